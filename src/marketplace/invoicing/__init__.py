"""Invoice renderer factory.

Provides get_invoice_renderer() / set_invoice_renderer() to swap
implementations. The INVOICE_RENDERER environment variable selects the
adapter; only the in-memory fake ships with the service.
"""

import os

from marketplace.invoicing.port import InvoiceRenderer

_current_renderer: InvoiceRenderer | None = None


def get_invoice_renderer() -> InvoiceRenderer:
    """Return the current invoice renderer. Defaults to FakeInvoiceRenderer."""
    global _current_renderer
    if _current_renderer is None:
        adapter = os.environ.get("INVOICE_RENDERER", "fake")
        if adapter == "fake":
            from marketplace.invoicing.fake_adapter import FakeInvoiceRenderer

            _current_renderer = FakeInvoiceRenderer()
        else:
            raise ValueError(f"Unknown invoice renderer: {adapter}")
    return _current_renderer


def set_invoice_renderer(renderer: InvoiceRenderer) -> None:
    """Override the active invoice renderer (useful for tests)."""
    global _current_renderer
    _current_renderer = renderer


def reset_invoice_renderer() -> None:
    """Reset to the default renderer."""
    global _current_renderer
    _current_renderer = None
