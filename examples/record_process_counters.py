"""Record a few process counters every second and print today's series.

Run with: python examples/record_process_counters.py perf.db
"""

import asyncio
import logging
import os
import sys
import time

from perfstore import SQLiteCounterStorage, batch, log_storage_errors


async def main(db_path: str, rounds: int = 5) -> None:
    storage = SQLiteCounterStorage(db_path)
    log_storage_errors(storage.errors, logging.getLogger("example"))

    for _ in range(rounds):
        load_1m, _, _ = os.getloadavg()
        await storage.store(
            batch({"load_1m": load_1m, "cpu_seconds": time.process_time()}),
            app_id="example",
        )
        await asyncio.sleep(1)

    for name in sorted(await storage.list_counters()):
        samples = await storage.query(name, app_id="example")
        print(f"{name}: {len(samples)} samples today")
        for sample in samples[-3:]:
            print(f"  {sample.timestamp:%H:%M:%S}  {sample.value:.3f}")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else "perf.db"))
