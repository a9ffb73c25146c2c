import logging

from google.cloud.firestore_v1.base_query import FieldFilter

from classhub.models.user import User, UserCreate, UserUpdate
from classhub.utils.exceptions import NotFoundError
from classhub.utils.firestore_exception import handle_firestore_exceptions
from classhub.utils.timing import utcnow


logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, db):
        self.db = db
        self.collection = db.collection("users")

    @staticmethod
    def _to_model(doc) -> User:
        user_data = doc.to_dict()
        user_data["id"] = doc.id
        return User(**user_data)

    @handle_firestore_exceptions
    def create_user(self, data: UserCreate) -> User:
        doc_ref = self.collection.document()
        now = utcnow()
        user_data = {
            **data.model_dump(mode="json"),
            "id": doc_ref.id,
            "created_at": now,
            "updated_at": now,
        }
        doc_ref.set(user_data)
        logger.info(f"Created user: id={doc_ref.id}, firebase_uid={data.firebase_uid}")
        return User(**user_data)

    @handle_firestore_exceptions
    def get_user(self, user_id: str) -> User:
        doc = self.collection.document(user_id).get()
        if not doc.exists:
            logger.warning(f"User not found: id={user_id}")
            raise NotFoundError(f"User with ID '{user_id}' not found.")
        return self._to_model(doc)

    @handle_firestore_exceptions
    def get_user_by_firebase_uid(self, firebase_uid: str) -> User:
        docs = (
            self.collection.where(filter=FieldFilter("firebase_uid", "==", firebase_uid))
            .limit(1)
            .get()
        )
        for doc in docs:
            return self._to_model(doc)
        raise NotFoundError(f"User with firebase uid '{firebase_uid}' not found.")

    @handle_firestore_exceptions
    def get_or_create_user(self, data: UserCreate) -> User:
        """Resolve the authenticated Firebase user to a stored profile."""
        try:
            return self.get_user_by_firebase_uid(data.firebase_uid)
        except NotFoundError:
            logger.info(f"First sign-in, creating profile for firebase_uid={data.firebase_uid}")
            return self.create_user(data)

    @handle_firestore_exceptions
    def update_user(self, user_id: str, data: UserUpdate) -> User:
        doc_ref = self.collection.document(user_id)
        if not doc_ref.get().exists:
            raise NotFoundError(f"User with ID '{user_id}' not found.")

        update_data = {k: v for k, v in data.model_dump(mode="json").items() if v is not None}
        if update_data:
            update_data["updated_at"] = utcnow()
            doc_ref.update(update_data)
            logger.info(f"Updated user '{user_id}': {', '.join(update_data)}")

        return self._to_model(doc_ref.get())
