from athena import sql
import os

with sql.connect(
    database=os.getenv("ATHENA_DATABASE", "default"),
    output_location=os.getenv("ATHENA_OUTPUT_LOCATION", ""),
    workgroup=os.getenv("ATHENA_WORKGROUP", "primary"),
    region_name=os.getenv("AWS_REGION"),
) as connection:

    with connection.cursor() as cursor:
        cursor.execute("SELECT * FROM information_schema.tables LIMIT 10")
        result = cursor.fetchall()

        for row in result:
            print(row)

        # Large results are faster to read from the object store. GZIP_DOWNLOAD runs
        # the query into a temporary table and drops it once the rows are read.
        cursor.execute(
            "SELECT x FROM UNNEST(sequence(1, 100000)) AS t(x)",
            options=sql.QueryOptions(result_mode=sql.ResultMode.GZIP_DOWNLOAD, timeout=120),
        )
        print(len(cursor.fetchall()), "rows")
