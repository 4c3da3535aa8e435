"""Low-level helpers shared by the nips and services layers.

The utils layer sits in the middle of the diamond DAG and depends only on
[relaypolicy.models][relaypolicy.models].

Attributes:
    keys: Pubkey normalization between hex and npub encodings via
        ``nostr_sdk.PublicKey``.
"""
