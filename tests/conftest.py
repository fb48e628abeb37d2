import copy

import pytest

from config import MigrationConfig

CHATS = "chats"
MESSAGES = "messages"


def _ok(data, status_code=200):
    return {"success": True, "data": data, "status_code": status_code, "message": ""}


def _fail(status_code, message):
    return {"success": False, "data": {"message": message, "code": status_code}, "status_code": status_code, "message": message}


class FakeDocumentStore:
    """In-memory stand-in for DocumentStoreClient with failure injection."""

    def __init__(self):
        self.collections = {CHATS: {}, MESSAGES: {}}
        self.calls = []
        self.fail_list = set()      # collection ids
        self.fail_get = set()       # document ids
        self.fail_create = set()    # document ids
        self.race_create = set()    # document ids that "appear" right before create
        self.fail_update = set()    # document ids
        self.raise_on_get = set()   # document ids

    def add(self, collection_id, doc):
        self.collections.setdefault(collection_id, {})[doc["$id"]] = copy.deepcopy(doc)

    def doc(self, collection_id, doc_id):
        return self.collections[collection_id].get(doc_id)

    @property
    def writes(self):
        return [c for c in self.calls if c[0] in ("create", "update")]

    async def list_documents(self, collection_id, limit, offset=0, filters=None):
        self.calls.append(("list", collection_id, filters, offset))
        if collection_id in self.fail_list:
            return _fail(500, "Server Error")
        docs = list(self.collections.get(collection_id, {}).values())
        if filters:
            attribute, value = filters.split("==", 1)
            docs = [d for d in docs if str(d.get(attribute)) == value]
        page = docs[offset:offset + limit]
        return _ok({"total": len(docs), "documents": copy.deepcopy(page)})

    async def get_document(self, collection_id, document_id):
        self.calls.append(("get", collection_id, document_id))
        if document_id in self.raise_on_get:
            raise RuntimeError("connection reset")
        if document_id in self.fail_get:
            return _fail(503, "Service Unavailable")
        doc = self.collections.get(collection_id, {}).get(document_id)
        if doc is None:
            return _fail(404, "Document with the requested ID could not be found.")
        return _ok(copy.deepcopy(doc))

    async def create_document(self, collection_id, document_id, data):
        self.calls.append(("create", collection_id, document_id))
        if document_id in self.fail_create:
            return _fail(400, "Invalid document structure")
        if document_id in self.race_create:
            self.add(collection_id, {"$id": document_id, **data})
        if document_id in self.collections.get(collection_id, {}):
            return _fail(409, "Document with the requested ID already exists.")
        doc = {"$id": document_id, **copy.deepcopy(data)}
        self.collections.setdefault(collection_id, {})[document_id] = doc
        return _ok(copy.deepcopy(doc), 201)

    async def update_document(self, collection_id, document_id, data):
        self.calls.append(("update", collection_id, document_id, dict(data)))
        if document_id in self.fail_update:
            return _fail(500, "Server Error")
        doc = self.collections.get(collection_id, {}).get(document_id)
        if doc is None:
            return _fail(404, "Document with the requested ID could not be found.")
        doc.update(copy.deepcopy(data))
        return _ok(copy.deepcopy(doc))


@pytest.fixture
def store():
    return FakeDocumentStore()


@pytest.fixture
def migration_config():
    # Small page size so pagination is exercised with a handful of documents
    return MigrationConfig(
        endpoint="https://store.test/v1",
        project_id="proj",
        database_id="db",
        chats_collection_id=CHATS,
        messages_collection_id=MESSAGES,
        api_key="secret",
        page_size=2,
    )
