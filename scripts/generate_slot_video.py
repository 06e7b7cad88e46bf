#!/usr/bin/env python3
"""Smoke test against a running server: generate a video and publish it into a slot.

Usage:
    python scripts/generate_slot_video.py VISION "A drone shot of a futuristic campus"
"""
import json
import sys

import requests

url = "http://127.0.0.1:9000/mcp"
headers = {
    "Content-Type": "application/json",
    "Accept": "application/json, text/event-stream",
}


def read_message(response):
    """Return the JSON-RPC message from a plain JSON or SSE response"""
    if response.headers.get("Content-Type", "").startswith("text/event-stream"):
        for line in response.text.splitlines():
            if line.startswith("data:"):
                return json.loads(line[len("data:"):].strip())
        return {}
    return response.json() if response.content else {}


def call(session_headers, request_id, method, params=None):
    body = {"jsonrpc": "2.0", "id": request_id, "method": method, "params": params or {}}
    response = requests.post(url, json=body, headers=session_headers, timeout=900)
    response.raise_for_status()
    return response, read_message(response)


def tool_result(message):
    result = message.get("result", {})
    if "structuredContent" in result:
        return result["structuredContent"]
    for item in result.get("content", []):
        if item.get("type") == "text":
            return json.loads(item["text"])
    return result


category = sys.argv[1] if len(sys.argv) > 1 else "VISION"
prompt = sys.argv[2] if len(sys.argv) > 2 else "A futuristic classroom with holograms floating in the air, cinematic lighting, 4k"

try:
    response, _ = call(headers, 1, "initialize", {
        "protocolVersion": "2025-03-26",
        "capabilities": {},
        "clientInfo": {"name": "slot-studio-smoke", "version": "0.1.0"},
    })
    session_headers = dict(headers)
    if response.headers.get("mcp-session-id"):
        session_headers["mcp-session-id"] = response.headers["mcp-session-id"]
    requests.post(url, json={"jsonrpc": "2.0", "method": "notifications/initialized"}, headers=session_headers, timeout=30)

    print(f"Generating video for {category} (this takes 1-2 minutes)...")
    _, message = call(session_headers, 2, "tools/call", {
        "name": "start_video_generation",
        "arguments": {"prompt": prompt, "wait": True},
    })
    job = tool_result(message).get("job") or {}
    print(f"Job state: {job.get('state')} - {job.get('status_message')}")
    if job.get("state") != "completed":
        sys.exit(1)

    _, message = call(session_headers, 3, "tools/call", {
        "name": "use_generated_video",
        "arguments": {"category": category},
    })
    result = tool_result(message)
    if "error" in result:
        print(f"Error: {result['error']}")
        sys.exit(1)
    print(result["message"])
    print(f"Locator: {result['asset']['locator']}")

except requests.RequestException as e:
    print(f"Error: {e}")
    sys.exit(1)
