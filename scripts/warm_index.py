import asyncio
import json
import os
import sys

# Ensure src is in pythonpath
sys.path.append(os.path.join(os.path.dirname(__file__), "..", "src"))

from scp_mcp_server.config import settings
from scp_mcp_server.scp.data_client import ScpDataClient
from scp_mcp_server.scp.repository import ScpRepository


async def main():
    print("Initializing data client...")
    client = ScpDataClient()
    repo = ScpRepository(client, collections=settings.collection_list())

    # Builds both the page index and the search index; a failure here is
    # the same failure every later request would see.
    print(f"Warming indexes for collections: {', '.join(settings.collection_list())}")
    await repo.warm_up()

    print("Index stats:")
    print(json.dumps(repo.stats(), indent=2))

    print("Cache stats:")
    print(json.dumps(client.cache_stats(), indent=2))


if __name__ == "__main__":
    asyncio.run(main())
