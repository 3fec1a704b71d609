"""
Adaptador de Firestore.

Los servicios sólo hablan con esta interfaz (lecturas por id o por igualdad de
campos, escrituras y transacciones), de modo que los tests pueden inyectar un
store en memoria con el mismo contrato.
"""
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from firebase_admin import firestore
from google.api_core import exceptions as google_exceptions

from app.utils.errors import InternalError

log = logging.getLogger(__name__)

Filter = Tuple[str, str, Any]


def _to_dict(snapshot) -> Optional[Dict[str, Any]]:
    if snapshot is None or not snapshot.exists:
        return None
    data = snapshot.to_dict() or {}
    data["id"] = snapshot.id
    return data


class FirestoreTransaction:
    """Vista de una transacción de Firestore. Todas las lecturas deben preceder a las escrituras."""

    def __init__(self, db, transaction):
        self._db = db
        self._transaction = transaction

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        ref = self._db.collection(collection).document(doc_id)
        return _to_dict(ref.get(transaction=self._transaction))

    def find(self, collection: str, filters: Sequence[Filter]) -> List[Dict[str, Any]]:
        query = self._db.collection(collection)
        for field, op, value in filters:
            query = query.where(field, op, value)
        return [_to_dict(doc) for doc in self._transaction.get(query)]

    def add(self, collection: str, data: Dict[str, Any]) -> str:
        ref = self._db.collection(collection).document()
        self._transaction.create(ref, data)
        return ref.id

    def set(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> None:
        ref = self._db.collection(collection).document(doc_id)
        self._transaction.set(ref, data, merge=merge)

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        ref = self._db.collection(collection).document(doc_id)
        self._transaction.update(ref, fields)


class FirestoreStore:
    def __init__(self, db):
        self.db = db

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        try:
            return _to_dict(self.db.collection(collection).document(doc_id).get())
        except google_exceptions.GoogleAPICallError as exc:
            raise InternalError(f"Error leyendo {collection}/{doc_id}: {exc}") from exc

    def find(self, collection: str, filters: Sequence[Filter], limit: Optional[int] = None) -> List[Dict[str, Any]]:
        query = self.db.collection(collection)
        for field, op, value in filters:
            query = query.where(field, op, value)
        if limit:
            query = query.limit(limit)
        try:
            return [_to_dict(doc) for doc in query.get()]
        except google_exceptions.GoogleAPICallError as exc:
            raise InternalError(f"Error consultando {collection}: {exc}") from exc

    def find_one(self, collection: str, field: str, value: Any) -> Optional[Dict[str, Any]]:
        docs = self.find(collection, [(field, "==", value)], limit=1)
        return docs[0] if docs else None

    def add(self, collection: str, data: Dict[str, Any]) -> str:
        try:
            _, ref = self.db.collection(collection).add(data)
        except google_exceptions.GoogleAPICallError as exc:
            raise InternalError(f"Error creando documento en {collection}: {exc}") from exc
        return ref.id

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        try:
            self.db.collection(collection).document(doc_id).update(fields)
        except google_exceptions.NotFound as exc:
            raise InternalError(f"{collection}/{doc_id} no existe") from exc
        except google_exceptions.GoogleAPICallError as exc:
            raise InternalError(f"Error actualizando {collection}/{doc_id}: {exc}") from exc

    def run_transaction(self, fn: Callable[[FirestoreTransaction], Any]) -> Any:
        """Ejecuta `fn` dentro de una transacción; Firestore la reintenta si hay contención."""

        @firestore.transactional
        def _run(transaction):
            return fn(FirestoreTransaction(self.db, transaction))

        try:
            return _run(self.db.transaction())
        except google_exceptions.GoogleAPICallError as exc:
            log.error("Transacción abortada: %s", exc)
            raise InternalError(f"Error en transacción: {exc}") from exc
        except ValueError as exc:
            # firestore.transactional agota los reintentos con ValueError
            log.error("Transacción sin confirmar: %s", exc)
            raise InternalError(f"Error en transacción: {exc}") from exc
