"""Invoice renderer port (abstract interface).

The renderer turns a delivered or paid order into a stored invoice document
and hands back a reference to it. It is not expected to be idempotent;
``InvoiceTrigger`` guarantees it is asked at most once per order.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RenderResult:
    """Result of an invoice render attempt."""

    success: bool
    invoice_ref: str | None = None
    failure_reason: str | None = None


class InvoiceRenderer(ABC):
    @abstractmethod
    def render(self, order, customer: dict | None, supplier: dict | None) -> RenderResult:
        """Render the invoice for ``order`` and return where it is stored."""
        ...
