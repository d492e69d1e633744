"""Wire formats for ledger transaction bodies and upload envelopes."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import base64
import hashlib
import json

from common.types import Manifest, Tag


@dataclass
class ChunkBody:
    """Body of one chunk transaction."""
    chunk: str
    chunk_index: int
    total_chunks: int
    chunk_set_id: str
    project_id: str
    project_name: str = ""

    def to_json(self) -> bytes:
        """Serialize to JSON bytes."""
        return json.dumps({
            'chunk': self.chunk,
            'metadata': {
                'chunkIndex': self.chunk_index,
                'totalChunks': self.total_chunks,
                'chunkSetId': self.chunk_set_id,
                'projectId': self.project_id,
                'projectName': self.project_name,
            }
        }).encode('utf-8')

    @classmethod
    def from_json(cls, data: bytes) -> 'ChunkBody':
        """Deserialize from JSON bytes."""
        obj = json.loads(data)
        metadata = obj.get('metadata') or {}
        return cls(
            chunk=obj['chunk'],
            chunk_index=int(metadata.get('chunkIndex', -1)),
            total_chunks=int(metadata.get('totalChunks', 0)),
            chunk_set_id=metadata.get('chunkSetId', ''),
            project_id=metadata.get('projectId', ''),
            project_name=metadata.get('projectName', ''),
        )


@dataclass
class ManifestBody:
    """Body of a manifest transaction."""
    project_id: str
    project_name: str
    chunk_set_id: str
    total_chunks: int
    chunks: List[str]
    created_at: str

    def to_json(self) -> bytes:
        """Serialize to JSON bytes."""
        return json.dumps({
            'projectId': self.project_id,
            'projectName': self.project_name,
            'chunkSetId': self.chunk_set_id,
            'totalChunks': self.total_chunks,
            'chunks': list(self.chunks),
            'createdAt': self.created_at,
        }).encode('utf-8')

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> 'ManifestBody':
        return cls(
            project_id=obj.get('projectId', ''),
            project_name=obj.get('projectName', ''),
            chunk_set_id=obj['chunkSetId'],
            total_chunks=int(obj['totalChunks']),
            chunks=list(obj['chunks']),
            created_at=obj.get('createdAt', ''),
        )

    @classmethod
    def from_json(cls, data: bytes) -> 'ManifestBody':
        """Deserialize from JSON bytes."""
        return cls.from_dict(json.loads(data))

    @staticmethod
    def looks_like_manifest(obj: Any) -> bool:
        """A body is a manifest when it carries a chunk set id, a count and an id list."""
        return (
            isinstance(obj, dict)
            and bool(obj.get('chunkSetId'))
            and bool(obj.get('totalChunks'))
            and isinstance(obj.get('chunks'), list)
        )

    def to_manifest(self) -> Manifest:
        return Manifest(
            project_id=self.project_id,
            project_name=self.project_name,
            chunk_set_id=self.chunk_set_id,
            total_chunks=self.total_chunks,
            chunks=list(self.chunks),
            created_at=self.created_at,
        )


@dataclass
class FolderStructureBody:
    """Body of a folder-structure transaction."""
    wallet_address: str
    folders: List[str]
    updated_at: int

    def to_json(self) -> bytes:
        """Serialize to JSON bytes."""
        return json.dumps({
            'walletAddress': self.wallet_address,
            'folders': list(self.folders),
            'updatedAt': self.updated_at,
        }).encode('utf-8')

    @classmethod
    def from_json(cls, data: bytes) -> 'FolderStructureBody':
        """Deserialize from JSON bytes."""
        obj = json.loads(data)
        return cls(
            wallet_address=obj.get('walletAddress', ''),
            folders=list(obj.get('folders') or []),
            updated_at=int(obj.get('updatedAt', 0)),
        )


@dataclass
class UserProfileBody:
    """
    Body of a user-profile transaction.

    Unknown keys of stored profiles are kept in `extra` and written back,
    so fields added by other clients survive an update.
    """
    wallet_address: str
    id: str = ""
    display_name: str = ""
    bio: str = ""
    avatar_url: str = ""
    website: str = ""
    twitter: str = ""
    github: str = ""
    created_at: int = 0
    updated_at: int = 0
    extra: Dict[str, Any] = field(default_factory=dict)

    FIELDS = {
        'displayName': 'display_name',
        'bio': 'bio',
        'avatarUrl': 'avatar_url',
        'website': 'website',
        'twitter': 'twitter',
        'github': 'github',
    }

    def to_json(self) -> bytes:
        """Serialize to JSON bytes."""
        obj = dict(self.extra)
        obj.update({
            'id': self.id,
            'walletAddress': self.wallet_address,
            'createdAt': self.created_at,
            'updatedAt': self.updated_at,
        })
        for key, attr in self.FIELDS.items():
            value = getattr(self, attr)
            if value:
                obj[key] = value
        return json.dumps(obj).encode('utf-8')

    @classmethod
    def from_json(cls, data: bytes) -> 'UserProfileBody':
        """Deserialize from JSON bytes."""
        obj = json.loads(data)
        if not isinstance(obj, dict):
            raise ValueError("Profile body is not a JSON object")
        known = {'id', 'walletAddress', 'createdAt', 'updatedAt', *cls.FIELDS}
        return cls(
            wallet_address=obj.get('walletAddress', ''),
            id=obj.get('id', ''),
            created_at=int(obj.get('createdAt') or 0),
            updated_at=int(obj.get('updatedAt') or 0),
            extra={k: v for k, v in obj.items() if k not in known},
            **{attr: obj.get(key) or '' for key, attr in cls.FIELDS.items()},
        )


@dataclass
class TransactionEnvelope:
    """Signed upload request sent to the ledger."""
    data: bytes
    tags: List[Tag]
    owner: str
    nonce: int
    signature: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            'data': base64.b64encode(self.data).decode('ascii'),
            'tags': [tag.to_dict() for tag in self.tags],
            'owner': self.owner,
            'nonce': self.nonce,
            'signature': self.signature,
        }

    def to_json(self) -> bytes:
        """Serialize to JSON bytes."""
        return json.dumps(self.to_dict()).encode('utf-8')

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> 'TransactionEnvelope':
        return cls(
            data=base64.b64decode(obj['data']),
            tags=[Tag(name=t['name'], value=t['value']) for t in obj.get('tags', [])],
            owner=obj['owner'],
            nonce=int(obj['nonce']),
            signature=obj.get('signature', ''),
        )

    @classmethod
    def from_json(cls, data: bytes) -> 'TransactionEnvelope':
        """Deserialize from JSON bytes."""
        return cls.from_dict(json.loads(data))


def signing_message(data: bytes, tags: List[Tag], owner: str, nonce: int) -> bytes:
    """
    Canonical bytes covered by a transaction signature.

    Args:
        data: Raw transaction body
        tags: Ordered tag list
        owner: Hex encoded public key of the signer
        nonce: Signer sequence number

    Returns:
        Deterministic JSON encoding of the signed fields
    """
    obj = {
        'data_sha256': hashlib.sha256(data).hexdigest(),
        'tags': [[tag.name, tag.value] for tag in tags],
        'owner': owner,
        'nonce': int(nonce),
    }
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode('utf-8')


@dataclass
class QueryFilter:
    """Tag filter: transaction must carry tag `name` with one of `values`."""
    name: str
    values: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {'name': self.name, 'values': list(self.values)}


def parse_receipt(obj: Dict[str, Any]) -> Dict[str, Any]:
    """Normalize an upload receipt returned by the ledger."""
    return {'id': obj['id'], 'timestamp': int(obj.get('timestamp') or 0)}


def tags_from_list(items: Optional[List[Dict[str, str]]]) -> List[Tag]:
    return [Tag(name=item['name'], value=item['value']) for item in (items or [])]
