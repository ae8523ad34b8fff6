"""Template registry — maps template keys to message templates.

Templates are plain text; each knows how to render a subject and body from
the payload handed to the fan-out.
"""


class OrderPlacedTemplate:
    key = "order_placed"

    @staticmethod
    def render(context: dict) -> dict:
        return {
            "subject": f"Order {context['order_number']} placed",
            "body": (
                f"Thank you for your order {context['order_number']}.\n"
                f"Total: {context['currency']} {context['total_amount']:.2f}\n"
                f"Estimated delivery: {context.get('estimated_delivery', 'soon')}"
            ),
        }


class SupplierNewOrderTemplate:
    key = "supplier_new_order"

    @staticmethod
    def render(context: dict) -> dict:
        return {
            "subject": f"New order {context['order_number']}",
            "body": f"You have a new order {context['order_number']} with {context['item_count']} item(s).",
        }


class OrderStatusChangedTemplate:
    key = "order_status_changed"

    @staticmethod
    def render(context: dict) -> dict:
        status = context["status"].replace("_", " ")
        return {
            "subject": f"Order {context['order_number']} is now {status}",
            "body": f"Your order {context['order_number']} is now {status}.",
        }


class ReturnRequestedTemplate:
    key = "return_requested"

    @staticmethod
    def render(context: dict) -> dict:
        return {
            "subject": f"Order {context['order_number']} return requested",
            "body": (
                f"The customer has requested a return for order {context['order_number']}.\n"
                f"Reason: {context.get('reason') or 'No reason provided.'}"
            ),
        }


class AgentAssignedTemplate:
    key = "agent_assigned"

    @staticmethod
    def render(context: dict) -> dict:
        return {
            "subject": f"Delivery partner assigned to order {context['order_number']}",
            "body": f"{context.get('agent_name') or 'A delivery partner'} will deliver your order {context['order_number']}.",
        }


class DeliveryOtpTemplate:
    key = "delivery_otp"

    @staticmethod
    def render(context: dict) -> dict:
        return {
            "subject": f"Delivery code for order {context['order_number']}",
            "body": (
                f"Your delivery code for order {context['order_number']} is {context['otp']}. "
                f"It is valid for {context['ttl_minutes']} minutes. Share it only with your delivery partner."
            ),
        }


class DeliveryQrTemplate:
    key = "delivery_qr"

    @staticmethod
    def render(context: dict) -> dict:
        return {
            "subject": f"Delivery QR for order {context['order_number']}",
            "body": f"Show this code to your delivery partner for order {context['order_number']}:\n{context['qr_payload']}",
        }


class OrderDeliveredTemplate:
    key = "order_delivered"

    @staticmethod
    def render(context: dict) -> dict:
        return {
            "subject": f"Order {context['order_number']} delivered",
            "body": f"Your order {context['order_number']} has been delivered. Thank you for shopping with us.",
        }


class DeliveryFailedTemplate:
    key = "delivery_failed"

    @staticmethod
    def render(context: dict) -> dict:
        return {
            "subject": f"Delivery attempt failed for order {context['order_number']}",
            "body": f"We could not deliver your order {context['order_number']}. We will be in touch.",
        }


TEMPLATE_REGISTRY: dict[str, type] = {
    template.key: template
    for template in (
        OrderPlacedTemplate,
        SupplierNewOrderTemplate,
        OrderStatusChangedTemplate,
        ReturnRequestedTemplate,
        AgentAssignedTemplate,
        DeliveryOtpTemplate,
        DeliveryQrTemplate,
        OrderDeliveredTemplate,
        DeliveryFailedTemplate,
    )
}


def get_template(template_key: str):
    """Look up a template class by key."""
    template_cls = TEMPLATE_REGISTRY.get(template_key)
    if template_cls is None:
        raise ValueError(f"No template registered for key: {template_key}")
    return template_cls
