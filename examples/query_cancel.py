from athena import sql
import os, threading, time

"""
The current query of a cursor may be cancelled by calling its `.cancel()` method as shown in the example below.
"""

with sql.connect(database=os.getenv("ATHENA_DATABASE", "default"),
                 output_location=os.getenv("ATHENA_OUTPUT_LOCATION", ""),
                 poll_interval=1) as connection:

  with connection.cursor() as cursor:
    def execute_really_long_query():
        try:
            cursor.execute("SELECT count(*) " +
                           "FROM UNNEST(sequence(1, 10000000)) A CROSS JOIN UNNEST(sequence(1, 10000)) B")
        except sql.exc.QueryCancelledError:
          print("It looks like this query was cancelled.")

    exec_thread = threading.Thread(target=execute_really_long_query)

    print("\n Beginning to execute long query")
    exec_thread.start()

    # Make sure the query has started before cancelling
    print("\n Waiting 5 seconds before canceling", end="", flush=True)
    time.sleep(5)

    print("\n Cancelling the cursor's query. The query engine is asked to stop it.")
    cursor.cancel()

    exec_thread.join(15)
    assert not exec_thread.is_alive()
    print("\n The previous query was successfully cancelled")

    # We can still execute a new query on the cursor
    cursor.execute("SELECT 1 AS one")
    print(cursor.fetchall())
