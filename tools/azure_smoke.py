# tools/azure_smoke.py
from __future__ import annotations
import asyncio, sys
from openai import NotFoundError
from grading_core.azure_cfg import async_client, settings
from grading_core.similarity import cosine

async def _run(a: str, b: str) -> None:
    s = settings()
    print("Endpoint :", s.endpoint)
    print("Deploy   :", s.deployment, "(embedding deployment name passed as model=)")
    print("API ver  :", s.api_version)
    cli = async_client()
    try:
        r = await cli.embeddings.create(model=s.deployment, input=[a, b])
        print("Dims     :", len(r.data[0].embedding))
        print("Cosine   :", round(cosine(r.data[0].embedding, r.data[1].embedding), 4))
    except NotFoundError:
        print("ERROR 404: Azure cannot find this embedding deployment for this API version.")
        print("→ Verify the deployment name EXACTLY as in the portal.")
        raise
    finally:
        await cli.close()

def main():
    a = sys.argv[1] if len(sys.argv) > 1 else "plants release oxygen"
    b = sys.argv[2] if len(sys.argv) > 2 else "oxygen is released by plants"
    asyncio.run(_run(a, b))

if __name__ == "__main__":
    main()
