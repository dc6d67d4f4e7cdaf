import os
import pytest


@pytest.fixture(scope="session")
def database():
    return os.getenv("ATHENA_DATABASE")


@pytest.fixture(scope="session")
def output_location():
    return os.getenv("ATHENA_OUTPUT_LOCATION")


@pytest.fixture(scope="session")
def workgroup():
    return os.getenv("ATHENA_WORKGROUP", "primary")


@pytest.fixture(scope="session")
def region_name():
    return os.getenv("AWS_REGION")


@pytest.fixture(scope="session")
def catalog():
    return os.getenv("ATHENA_CATALOG", "")


@pytest.fixture(scope="session")
def connection_details(database, output_location, workgroup, region_name, catalog):
    return {
        "database": database,
        "output_location": output_location,
        "workgroup": workgroup,
        "region_name": region_name,
        "catalog": catalog,
    }
