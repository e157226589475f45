"""
Tests for the remote-function client and the three charge gateways.

httpx.MockTransport stands in for the backend, so request paths, headers and
payload shapes are asserted without a network.
"""
import json
import pytest
import httpx

from checkout.errors import ChargeInitiationError
from checkout.gateways.base import ChargeRequest
from checkout.gateways.functions import FunctionsClient
from checkout.gateways.mpesa_invoice import InvoiceStkGateway
from checkout.gateways.payment_link import PaymentLinkStkGateway
from checkout.gateways.subscription import SubscriptionMpesaGateway

BASE_URL = "https://project.example.co/functions/v1"


def functions_client(handler):
    transport = httpx.MockTransport(handler)
    http = httpx.AsyncClient(transport=transport, base_url=BASE_URL)
    return FunctionsClient(BASE_URL, http_client=http)


def recording_handler(response_json, status_code=200):
    calls = []

    def handler(request: httpx.Request):
        calls.append(request)
        return httpx.Response(status_code, json=response_json)

    return handler, calls


# ---------------------------------------------------------------------------
# FunctionsClient
# ---------------------------------------------------------------------------
class TestFunctionsClient:
    async def test_returns_json_body(self):
        handler, calls = recording_handler({"success": True})
        client = functions_client(handler)
        assert await client.invoke("mpesa-stk-push", {"a": 1}) == {"success": True}
        assert calls[0].url.path == "/functions/v1/mpesa-stk-push"
        assert json.loads(calls[0].content) == {"a": 1}
        await client.aclose()

    async def test_error_status_still_returns_body(self):
        handler, _ = recording_handler({"error": "Unauthorized"}, status_code=401)
        client = functions_client(handler)
        assert await client.invoke("mpesa-stk-push", {}) == {"error": "Unauthorized"}

    async def test_non_json_body_raises(self):
        def handler(request):
            return httpx.Response(502, text="<html>Bad Gateway</html>")

        client = functions_client(handler)
        with pytest.raises(ChargeInitiationError, match="status 502"):
            await client.invoke("mpesa-stk-push", {})

    async def test_non_object_json_raises(self):
        handler, _ = recording_handler(["unexpected"])
        client = functions_client(handler)
        with pytest.raises(ChargeInitiationError):
            await client.invoke("mpesa-stk-push", {})

    async def test_transport_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = functions_client(handler)
        with pytest.raises(ChargeInitiationError, match="Failed to reach payment service"):
            await client.invoke("payment-link-stk", {})

    async def test_api_key_headers(self):
        client = FunctionsClient(BASE_URL, api_key="anon-key")
        assert client._client.headers["Authorization"] == "Bearer anon-key"
        assert client._client.headers["apikey"] == "anon-key"
        await client.aclose()

    async def test_no_auth_header_without_key(self):
        client = FunctionsClient(BASE_URL)
        assert "Authorization" not in client._client.headers
        await client.aclose()


# ---------------------------------------------------------------------------
# Gateways
# ---------------------------------------------------------------------------
class TestInvoiceStkGateway:
    async def test_payload_and_reference(self):
        handler, calls = recording_handler({
            "success": True,
            "message": "STK Push sent successfully. Please check your phone.",
            "checkoutRequestId": "ws_CO_INV",
        })
        gateway = InvoiceStkGateway(functions_client(handler))
        request = ChargeRequest("inv_1", "254712345678", 1000.0, description="Payment for INV-0001")

        result = await gateway.initiate_charge(request)

        assert result.success is True
        assert result.checkout_request_id == "ws_CO_INV"
        assert calls[0].url.path.endswith("/mpesa-stk-push")
        assert json.loads(calls[0].content) == {
            "invoiceId": "inv_1",
            "phoneNumber": "254712345678",
            "amount": 1000.0,
            "description": "Payment for INV-0001",
        }

    async def test_remote_error_is_normalized(self):
        handler, _ = recording_handler(
            {"error": "M-PESA credentials not found. Please set up your M-PESA integration in Payment Methods first."},
            status_code=400,
        )
        gateway = InvoiceStkGateway(functions_client(handler))
        result = await gateway.initiate_charge(ChargeRequest("inv_1", "254712345678", 1000.0))
        assert result.success is False
        assert "credentials not found" in result.error


class TestPaymentLinkStkGateway:
    async def test_payload(self):
        handler, calls = recording_handler({"success": True, "checkoutRequestId": "ws_CO_LNK"})
        gateway = PaymentLinkStkGateway(functions_client(handler))

        result = await gateway.initiate_charge(ChargeRequest("donate", "256712345678", 250.0))

        assert result.checkout_request_id == "ws_CO_LNK"
        assert calls[0].url.path.endswith("/payment-link-stk")
        assert json.loads(calls[0].content) == {
            "linkSlug": "donate",
            "phoneNumber": "256712345678",
            "amount": 250.0,
        }


class TestSubscriptionMpesaGateway:
    async def test_payload(self):
        handler, calls = recording_handler({
            "success": True,
            "message": "Payment initiated. Please complete the payment on your phone.",
            "checkout_request_id": "ws_CO_SUB",
            "merchant_request_id": "29115-34620561-1",
        })
        gateway = SubscriptionMpesaGateway(functions_client(handler))
        request = ChargeRequest("user_1", "254712345678", 1500, currency="KES", plan_name="pro")

        result = await gateway.initiate_charge(request)

        assert result.success is True
        assert result.checkout_request_id == "ws_CO_SUB"
        assert calls[0].url.path.endswith("/subscription-mpesa")
        assert json.loads(calls[0].content) == {
            "user_id": "user_1",
            "plan_name": "pro",
            "amount": 1500,
            "phone_number": "254712345678",
            "currency": "KES",
        }

    def test_gateway_names_match_profiles(self):
        from checkout.services.attempts import PROFILES
        names = {
            InvoiceStkGateway(None).gateway_name,
            PaymentLinkStkGateway(None).gateway_name,
            SubscriptionMpesaGateway(None).gateway_name,
        }
        assert names == {p.gateway_name for p in PROFILES.values()}
