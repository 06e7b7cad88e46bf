"""Configuration tools for the Slot Studio MCP server"""

from typing import Any, Dict, Optional

from mcp.server.fastmcp import FastMCP


def register_configuration_tools(
    mcp: FastMCP,
    provider_client,
    defaults_manager
):
    """Register configuration tools with the MCP server"""

    @mcp.tool()
    def get_provider_status() -> dict:
        """Report whether a provider API key is available and which models are in use."""
        return {
            "credential_available": provider_client.check_credential(),
            "base_url": provider_client.base_url,
            "video_model": provider_client.video_model,
            "text_model": provider_client.text_model,
            "image_model": provider_client.image_model,
        }

    @mcp.tool()
    def get_defaults() -> dict:
        """Get current effective defaults for provider, generation and assistant settings.

        Returns merged defaults from all sources (runtime, config, env, hardcoded).
        """
        return defaults_manager.get_all_defaults()

    @mcp.tool()
    def set_defaults(
        provider: Optional[Dict[str, Any]] = None,
        generation: Optional[Dict[str, Any]] = None,
        assist: Optional[Dict[str, Any]] = None,
        persist: bool = False
    ) -> dict:
        """Set runtime defaults.

        Args:
            provider: e.g. {"request_timeout": 90}
            generation: e.g. {"model": "veo-3.1-generate-preview", "poll_interval": 10, "timeout": 900}
            assist: e.g. {"text_model": "gemini-2.5-flash"}
            persist: If True, write defaults to ~/.config/slot-studio/config.json
        """
        results = {}
        errors = []

        for namespace, values in (("provider", provider), ("generation", generation), ("assist", assist)):
            if not values:
                continue
            result = defaults_manager.set_defaults(namespace, values)
            if "error" in result or "errors" in result:
                errors.extend(result.get("errors", [result.get("error")]))
                continue
            results[namespace] = result
            if persist:
                persist_result = defaults_manager.persist_defaults(namespace, result["updated"])
                if "error" in persist_result:
                    errors.append(f"Failed to persist {namespace} defaults: {persist_result['error']}")

        effective = defaults_manager.get_all_defaults()
        provider_client.text_model = effective["assist"]["text_model"]
        provider_client.image_model = effective["assist"]["image_model"]
        provider_client.video_model = effective["generation"]["model"]
        provider_client.timeout = effective["provider"]["request_timeout"]
        provider_client.base_url = str(effective["provider"]["base_url"]).rstrip("/")

        if errors:
            return {"success": False, "errors": errors}

        return {"success": True, "updated": results}
