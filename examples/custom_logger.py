from athena import sql
import os
import logging


logger = logging.getLogger("athena.sql")
logger.setLevel(logging.DEBUG)
fh = logging.FileHandler("pysqllogs.log")
fh.setFormatter(logging.Formatter("%(asctime)s %(process)d %(thread)d %(message)s"))
fh.setLevel(logging.DEBUG)
logger.addHandler(fh)

with sql.connect(
    database=os.getenv("ATHENA_DATABASE", "default"),
    output_location=os.getenv("ATHENA_OUTPUT_LOCATION", ""),
    result_mode=sql.ResultMode.DOWNLOAD,
) as connection:
    with connection.cursor() as cursor:
        cursor.execute("SELECT 1 AS one, 'a' AS letter")
        result = cursor.fetchall()

        for row in result:
            print(row)
