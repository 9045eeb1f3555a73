import structlog
from sqlalchemy.exc import SQLAlchemyError

from .errors import StoreError
from .models import db

logger = structlog.get_logger(__name__)

# sqlite3 raises OverflowError for out-of-range integers before SQLAlchemy wraps it
BACKEND_ERRORS = (SQLAlchemyError, OverflowError)


class RecordStore:
    def __init__(self, session=None):
        self._session = session

    @property
    def session(self):
        return self._session if self._session is not None else db.session

    def _fail(self, op, model, exc):
        self.session.rollback()
        logger.error("store_error", op=op, table=model.__tablename__, error=str(exc))
        raise StoreError(detail=f"{op} on {model.__tablename__} failed: {exc}") from exc

    def select(self, model, *criteria, order_by=None, **filters):
        """
        Rows of model matching the equality filters (and any extra
        SQLAlchemy criteria), optionally ordered.
        """
        try:
            query = self.session.query(model).filter_by(**filters)
            if criteria:
                query = query.filter(*criteria)
            if order_by is not None:
                if not isinstance(order_by, (list, tuple)):
                    order_by = [order_by]
                query = query.order_by(*order_by)
            return query.all()
        except BACKEND_ERRORS as exc:
            self._fail("select", model, exc)

    def first(self, model, *criteria, **filters):
        rows = self.select(model, *criteria, order_by=model.id, **filters)
        return rows[0] if rows else None

    def get(self, model, row_id):
        if row_id is None:
            return None
        try:
            return self.session.get(model, row_id)
        except BACKEND_ERRORS as exc:
            self._fail("get", model, exc)

    def insert(self, model, **fields):
        try:
            row = model(**fields)
            self.session.add(row)
            self.session.commit()
            return row
        except BACKEND_ERRORS as exc:
            self._fail("insert", model, exc)

    def update(self, row, **patch):
        model = type(row)
        try:
            for key, value in patch.items():
                setattr(row, key, value)
            self.session.commit()
            return row
        except BACKEND_ERRORS as exc:
            self._fail("update", model, exc)

    def delete(self, row):
        model = type(row)
        try:
            self.session.delete(row)
            self.session.commit()
        except BACKEND_ERRORS as exc:
            self._fail("delete", model, exc)
