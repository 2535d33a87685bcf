"""Asynchronous client for the payables authority service."""
from payables.client.authority_client import AuthorityClient
from payables.client.reference_data import ReferenceDataRepository

__all__ = ['AuthorityClient', 'ReferenceDataRepository']
