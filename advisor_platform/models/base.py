from bson import ObjectId
from bson.errors import InvalidId
from pymongo import DESCENDING

from advisor_platform.config.database import db_instance
from advisor_platform.utils.dates import utcnow


class MongoModel:
    """
    Shared persistence for the document models.

    Subclasses name their collection and list their persisted ``fields``;
    every field is a constructor keyword argument and an instance attribute.
    """

    collection_name = None
    fields = ()

    def __init__(self, _id=None, created_at=None, updated_at=None, **values):
        self.id = str(_id) if _id else None
        for field in self.fields:
            setattr(self, field, values.pop(field, None))
        if values:
            raise TypeError(f"Unknown fields for {type(self).__name__}: {', '.join(sorted(values))}")
        self.created_at = created_at or utcnow()
        self.updated_at = updated_at or self.created_at

    @classmethod
    def collection(cls):
        return db_instance.get_db()[cls.collection_name]

    def to_document(self):
        data = {field: getattr(self, field) for field in self.fields}
        data['created_at'] = self.created_at
        data['updated_at'] = self.updated_at
        return data

    def save(self):
        """Insert or update this document"""
        self.updated_at = utcnow()
        data = self.to_document()

        if self.id:
            self.collection().update_one({'_id': ObjectId(self.id)}, {'$set': data})
        else:
            result = self.collection().insert_one(data)
            self.id = str(result.inserted_id)

        return self

    def delete(self):
        if self.id:
            self.collection().delete_one({'_id': ObjectId(self.id)})

    @classmethod
    def from_document(cls, doc):
        values = {field: doc.get(field) for field in cls.fields}
        return cls(
            _id=doc.get('_id'),
            created_at=doc.get('created_at'),
            updated_at=doc.get('updated_at'),
            **values
        )

    @classmethod
    def find_by_id(cls, model_id):
        """Find document by ID; malformed ids find nothing"""
        try:
            object_id = ObjectId(str(model_id))
        except (InvalidId, TypeError):
            return None

        doc = cls.collection().find_one({'_id': object_id})
        return cls.from_document(doc) if doc else None

    @classmethod
    def find_one(cls, query):
        doc = cls.collection().find_one(query)
        return cls.from_document(doc) if doc else None

    @classmethod
    def find(cls, query, sort=None, limit=None, skip=None):
        cursor = cls.collection().find(query).sort(sort or [('created_at', DESCENDING)])
        if skip:
            cursor = cursor.skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        return [cls.from_document(doc) for doc in cursor]

    @classmethod
    def count(cls, query):
        return cls.collection().count_documents(query)

    def to_dict(self):
        data = {'id': self.id}
        data.update({field: getattr(self, field) for field in self.fields})
        data['created_at'] = self.created_at
        data['updated_at'] = self.updated_at
        return data
