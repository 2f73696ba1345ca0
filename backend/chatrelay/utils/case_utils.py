def to_camel(string: str) -> str:
    """``parent_message_id`` -> ``parentMessageId``, the field style of the wire format."""
    head, *rest = string.split('_')
    return head + ''.join(part.capitalize() for part in rest)
