"""List flows parked on a wait task (the set a scheduler would resume).

Usage:
    python -m scripts.list_waiting_flows [tenant_id]
If tenant_id is omitted, lists waiting flows of every tenant in this
environment. Requires the STORE_* settings and ENVIRONMENT_TAG.
"""

import asyncio
import sys

from stateflow.core.config import get_settings
from stateflow.core.lifespan import create_flow_engine
from stateflow.domain.exceptions import StateFlowException


async def main() -> None:
    """Print one ref id per line, then a total."""
    settings = get_settings()
    tenant_filter = sys.argv[1] if len(sys.argv) > 1 else None

    try:
        async with create_flow_engine(settings) as repo:
            total = 0
            async for ref_id in repo.get_all_waiting_flows_ids(tenant_filter):
                print(ref_id)
                total += 1
    except StateFlowException as e:
        print(f"{e.error_code}: {e.message}", file=sys.stderr)
        sys.exit(1)

    scope = f"tenant {tenant_filter}" if tenant_filter else "all tenants"
    print(f"Done. {total} waiting flow(s) in {settings.environment_tag} ({scope})")


if __name__ == "__main__":
    asyncio.run(main())
