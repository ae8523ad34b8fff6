"""Configurable fake invoice renderer for development and testing."""

from uuid import uuid4

from marketplace.invoicing.port import InvoiceRenderer, RenderResult


class FakeInvoiceRenderer(InvoiceRenderer):
    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.should_raise: bool = False
        self.failure_reason: str = "Renderer unavailable"
        self.calls: list[dict] = []

    def configure(self, should_succeed: bool = True, failure_reason: str = "Renderer unavailable", should_raise: bool = False) -> None:
        """Configure renderer behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.should_raise = should_raise

    def render(self, order, customer: dict | None, supplier: dict | None) -> RenderResult:
        self.calls.append(
            {
                "order_id": str(order.id),
                "order_number": order.order_number,
                "total_amount": order.pricing.total_amount if order.pricing else None,
                "customer": customer,
                "supplier": supplier,
            }
        )

        if self.should_raise:
            raise ConnectionError(self.failure_reason)
        if not self.should_succeed:
            return RenderResult(success=False, failure_reason=self.failure_reason)
        return RenderResult(
            success=True,
            invoice_ref=f"invoices/{order.order_number}-{uuid4().hex[:8]}.pdf",
        )

    def calls_for(self, order_id: str) -> list[dict]:
        return [call for call in self.calls if call["order_id"] == order_id]

    def reset(self) -> None:
        self.calls.clear()
        self.configure()
