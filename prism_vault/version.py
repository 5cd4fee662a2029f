"""Prism Vault Meta information.
   Prism Vault encrypts personally-identifiable record fields on the client
   before they reach the remote store.
"""
__title__ = 'prism_vault'
__description__ = (
   'Client-side field-level encryption for personal-finance records '
   '(PBKDF2 + AES-256-GCM).'
)
__version__ = '0.1.0'
__license__ = 'Apache-2.0'
