from transport_client.api.client import TransportApiClient, extract_error_message, parse_entity

__all__ = ["TransportApiClient", "extract_error_message", "parse_entity"]
