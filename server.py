import logging
import os

from fastmcp import FastMCP

from ado_dashboard import __version__, resources, tools
from ado_dashboard.client import AdoClient
from ado_dashboard.errors import AdoAuthenticationError
from ado_dashboard.notifications import SessionRegistry
from ado_dashboard.telemetry import shutdown_telemetry

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)

mcp: FastMCP = FastMCP(name="ado-dashboard", version=__version__)

# Active ADO client; replaced by set_ado_organization
client_container = {
    "client": None,
}

# Recipients of dashboard progress events
session_registry = SessionRegistry()


def initialize_ado_client(org_url=None):
    """
    Initializes the Azure DevOps client. If org_url is not provided, it uses
    the ADO_ORGANIZATION_URL environment variable.

    Returns:
        tuple: ``(client, None)`` on success, ``(None, error_message)`` otherwise.
    """
    if not org_url:
        org_url = os.environ.get("ADO_ORGANIZATION_URL")

    if not org_url:
        return None, "ADO_ORGANIZATION_URL is not set."

    try:
        client = AdoClient(organization_url=org_url)
        client.check_authentication()
        logger.info(f"Azure DevOps client initialized and authenticated for {org_url}.")
        return client, None
    except (ValueError, AdoAuthenticationError) as e:
        error_message = f"Authentication check failed: {e}"
        logger.warning(f"Could not initialize Azure DevOps client for {org_url}: {error_message}")
        return None, error_message


@mcp.tool
def set_ado_organization(organization_url: str) -> dict:
    """
    Switches the active Azure DevOps organization for the MCP server.
    If the switch fails, the previous client state is preserved.
    """
    logger.info(f"Attempting to switch to ADO organization: {organization_url}")

    new_client, error_message = initialize_ado_client(org_url=organization_url)
    if not new_client:
        logger.error(
            f"Failed to switch to organization: {organization_url}. Keeping previous client state."
        )
        raise AdoAuthenticationError(error_message)

    previous = client_container["client"]
    client_container["client"] = new_client
    if previous is not None:
        previous.close()
    logger.info(f"Successfully switched to organization: {organization_url}")
    return {"result": True}


client_container["client"], _ = initialize_ado_client(
    org_url=os.environ.get("ADO_ORGANIZATION_URL")
)

tools.register_dashboard_tools(mcp, client_container, session_registry)
resources.register_mcp_resources(mcp)


def main():
    """Main entry point for the ado-dashboard server."""
    try:
        mcp.run()
    finally:
        shutdown_telemetry()


if __name__ == "__main__":  # pragma: no cover
    main()
