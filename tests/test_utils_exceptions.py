import asyncio

from corebridge.utils.exceptions import (
    CallCanceled,
    CoreBridgeError,
    EngineError,
    ErrorCategory,
    InvalidParamsError,
    InvalidRequestError,
    MethodNotFoundError,
    OutboundQueueFull,
    ParseError,
    ProtocolError,
    TransportClosed,
    TransportFault,
    classify_exception,
    sanitize_error_message,
)


def test_base_error_to_dict_and_str():
    err = CoreBridgeError("boom", code="X", category=ErrorCategory.ENGINE, details={"a": 1})
    assert err.to_dict() == {"error": "X", "message": "boom", "category": "engine", "details": {"a": 1}}
    assert str(err) == "[X] boom"


def test_protocol_errors_carry_rpc_codes():
    assert ParseError().rpc_code == -32700
    assert InvalidRequestError().rpc_code == -32600
    assert MethodNotFoundError("m").rpc_code == -32601
    assert InvalidParamsError().rpc_code == -32602
    assert ProtocolError("x", rpc_code=-32099).rpc_code == -32099
    assert ProtocolError("x").rpc_code == -32600


def test_method_not_found_names_method():
    err = MethodNotFoundError("get_chat", request_id=3)
    assert err.request_id == 3
    assert err.data == {"method": "get_chat"}
    assert "get_chat" in err.message


def test_categories():
    assert EngineError("x").category == ErrorCategory.ENGINE
    assert CallCanceled(1).category == ErrorCategory.CANCELED
    assert TransportClosed().category == ErrorCategory.TRANSPORT
    assert TransportFault("io").category == ErrorCategory.TRANSPORT
    assert InvalidParamsError().category == ErrorCategory.VALIDATION
    full = OutboundQueueFull("s", 4, 0.5)
    assert full.category == ErrorCategory.RESOURCE
    assert full.details == {"session_id": "s", "capacity": 4, "waited_seconds": 0.5}


def test_classify_exception():
    assert classify_exception(EngineError("x")) == ("ENGINE_ERROR", ErrorCategory.ENGINE)
    assert classify_exception(asyncio.TimeoutError()) == ("TIMEOUT", ErrorCategory.TIMEOUT)
    assert classify_exception(ConnectionResetError())[1] == ErrorCategory.TRANSPORT
    assert classify_exception(ValueError("bad"))[0] == "INVALID_VALUE"
    assert classify_exception(KeyError("k"))[0] == "MISSING_KEY"
    assert classify_exception(RuntimeError("request timed out"))[0] == "TIMEOUT"
    assert classify_exception(RuntimeError("??")) == ("INTERNAL_ERROR", ErrorCategory.FATAL)


def test_sanitize_error_message():
    assert "sk-123" not in sanitize_error_message("api_key=sk-123 failed")
    assert "eyJhbGci" not in sanitize_error_message("Authorization: Bearer eyJhbGci.x.y")
    assert sanitize_error_message("plain failure") == "plain failure"
