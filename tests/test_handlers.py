#!/usr/bin/env python3
"""
Test handlers module - the single source of truth for tool routing.
"""

import asyncio

import pytest
from conftest import MARK

from mcp_textwatermark.handlers import (
    TOOL_ERROR_CODE,
    ToolRegistry,
    ToolResult,
    build_registry,
)
from mcp_textwatermark.tools import TOOL_SPECS, ToolKind, get_mcp_tools, robust_encode_payload
from textwatermark.client import WatermarkClient


def _dispatch(config, service, *calls):
    """Run (name, arguments) calls concurrently against the fake service"""

    async def run():
        async with WatermarkClient(config, transport=service.transport()) as client:
            registry = build_registry(client)
            return await asyncio.gather(*(registry.dispatch(n, a) for n, a in calls))

    return asyncio.run(run())


def test_registry_describes_four_tools(config):
    client = WatermarkClient(config)
    registry = ToolRegistry(client)
    for spec in TOOL_SPECS:
        registry.register(spec)
    names = [tool.name for tool in registry.describe()]
    asyncio.run(client.aclose())
    assert names == ["fast_encode", "fast_decode", "robust_encode", "robust_decode"]
    assert [t.name for t in get_mcp_tools()] == names
    print("✓ Tool listing works")


def test_register_rejects_duplicates(config):
    client = WatermarkClient(config)
    registry = ToolRegistry(client)
    registry.register(TOOL_SPECS[0])
    with pytest.raises(ValueError, match="already registered"):
        registry.register(TOOL_SPECS[0])
    asyncio.run(client.aclose())
    print("✓ Duplicate registration rejected")


def test_fast_encode_example(config, service):
    (result,) = _dispatch(
        config, service, ("fast_encode", {"visible_text": "Hello world", "hidden_text": "secret"})
    )
    assert not result.is_error
    assert result.text == "Hello world" + MARK + "secret"
    assert result.text != "Hello world"
    assert service.payloads() == [{"text": "Hello world", "secret": "secret"}]
    print("✓ fast_encode works")


def test_fast_round_trip(config, service):
    for visible, hidden in [("Hello world", "secret"), ("", "x"), ("ünïcode ✓", "多字节")]:
        (encoded,) = _dispatch(
            config, service, ("fast_encode", {"visible_text": visible, "hidden_text": hidden})
        )
        (decoded,) = _dispatch(config, service, ("fast_decode", {"input_text": encoded.text}))
        assert decoded.text == hidden
    print("✓ fast round trip works")


def test_robust_round_trip(config, service):
    (encoded,) = _dispatch(
        config, service,
        ("robust_encode", {"visible_text": "Cover text", "hidden_text": "payload",
                           "distribution": "even", "stealth_level": "high"}),
    )
    (decoded,) = _dispatch(config, service, ("robust_decode", {"input_text": encoded.text}))
    assert decoded.text == "payload"
    assert [r.url.path for r in service.requests] == [
        "/api/watermark/encode-robust",
        "/api/watermark/decode-robust",
    ]
    assert service.payloads()[0] == {
        "visible_text": "Cover text",
        "hidden_text": "payload",
        "distribution": "even",
        "stealth_level": "high",
    }
    print("✓ robust round trip works")


def test_robust_encode_omits_optional_keys(config, service):
    """Absent options are not sent at all"""
    _dispatch(config, service, ("robust_encode", {"visible_text": "a", "hidden_text": "b"}))
    assert service.payloads() == [{"visible_text": "a", "hidden_text": "b"}]
    print("✓ Optional keys omitted")


def test_robust_encode_payload_drops_empty_values():
    payload = robust_encode_payload(
        {"visible_text": "a", "hidden_text": "b", "distribution": "", "stealth_level": "maximum"}
    )
    assert payload == {"visible_text": "a", "hidden_text": "b", "stealth_level": "maximum"}
    print("✓ Empty options dropped")


def test_invalid_stealth_level_never_hits_network(config, service):
    (result,) = _dispatch(
        config, service,
        ("robust_encode", {"visible_text": "a", "hidden_text": "b", "stealth_level": "ultra"}),
    )
    assert result.is_error
    assert result.error.kind == "validation"
    assert result.error.code == TOOL_ERROR_CODE
    assert "robust_encode" in result.error.message
    assert "ultra" in result.error.message
    assert service.requests == []
    print("✓ Invalid stealth_level rejected")


def test_missing_required_field(config, service):
    (result,) = _dispatch(config, service, ("fast_encode", {"visible_text": "a"}))
    assert result.error.kind == "validation"
    assert "hidden_text" in result.error.message
    assert service.requests == []
    print("✓ Missing field rejected")


def test_wrong_type(config, service):
    (result,) = _dispatch(config, service, ("fast_decode", {"input_text": 42}))
    assert result.error.kind == "validation"
    assert service.requests == []
    print("✓ Wrong type rejected")


def test_unknown_tool_is_distinct_kind(config, service):
    (result,) = _dispatch(config, service, ("unknown_tool", {}))
    assert result.is_error
    assert result.error.kind == "unknown_tool"
    assert "Unknown tool" in result.error.message
    print("✓ Unknown tool error works")


def test_remote_error_message(config, service):
    service.errors["/api/watermark/decode"] = (401, {"detail": "Invalid token."})
    (result,) = _dispatch(config, service, ("fast_decode", {"input_text": "x"}))
    assert result.error.kind == "remote"
    assert result.error.message == (
        "Tool 'fast_decode' failed: API Error for fast_decode (401): {\"detail\":\"Invalid token.\"}"
    )
    print("✓ Remote error message works")


def test_malformed_response(config, service):
    service.errors["/api/watermark/encode"] = (200, {"unexpected": "shape"})
    (result,) = _dispatch(
        config, service, ("fast_encode", {"visible_text": "a", "hidden_text": "b"})
    )
    assert result.error.kind == "transport"
    assert "encoded" in result.error.message
    print("✓ Malformed response reported")


def test_timeout_then_next_call_succeeds(config, service):
    """A timed-out call names its tool and does not poison the session"""
    service.timeouts.add("/api/watermark/encode-robust")

    async def run():
        async with WatermarkClient(config, transport=service.transport()) as client:
            registry = build_registry(client)
            failed = await registry.dispatch(
                "robust_encode", {"visible_text": "a", "hidden_text": "b"}
            )
            ok = await registry.dispatch("fast_decode", {"input_text": "a" + MARK + "b"})
            return failed, ok

    failed, ok = asyncio.run(run())
    assert failed.error.kind == "transport"
    assert failed.error.message.startswith("Tool 'robust_encode' failed: API Error for robust_encode")
    assert "timed out" in failed.error.message
    assert ok == ToolResult.ok("b")
    print("✓ Timeout isolated")


def test_slow_call_does_not_block_others(config, service):
    service.delays["/api/watermark/encode-robust"] = 0.2
    results = _dispatch(
        config, service,
        ("robust_encode", {"visible_text": "a", "hidden_text": "b"}),
        ("fast_decode", {"input_text": "c" + MARK + "d"}),
    )
    assert [r.text for r in results] == ["a" + MARK + "b", "d"]
    assert service.completed == ["/api/watermark/decode", "/api/watermark/encode-robust"]
    print("✓ Concurrent calls independent")


def test_concurrent_failure_does_not_affect_others(config, service):
    service.errors["/api/watermark/decode-robust"] = (500, {"detail": "boom"})
    results = _dispatch(
        config, service,
        ("robust_decode", {"input_text": "x"}),
        ("fast_encode", {"visible_text": "a", "hidden_text": "b"}),
    )
    assert results[0].error.kind == "remote"
    assert results[1].text == "a" + MARK + "b"
    print("✓ Failures isolated")


def test_tool_kinds_cover_specs():
    assert {spec.kind for spec in TOOL_SPECS} == set(ToolKind)
    print("✓ Every tool kind is defined")


def test_result_variants_exclusive():
    ok = ToolResult.ok("text")
    fail = ToolResult.fail("remote", "msg")
    assert ok.error is None and not ok.is_error
    assert fail.text is None and fail.is_error
    print("✓ ToolResult variants exclusive")
