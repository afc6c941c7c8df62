from enum import Enum


class UserType(str, Enum):
    ADMIN = "ADMIN"
    HEAD = "HEAD"
    STAFF = "STAFF"


class ActivityAction(str, Enum):
    LOGIN = "LOGIN"
    SIGNUP = "SIGNUP"
    CARD_CREATED = "CARD_CREATED"
    CARD_UPDATED = "CARD_UPDATED"
    CARD_DELETED = "CARD_DELETED"
    FILE_UPLOADED = "FILE_UPLOADED"
    FILE_DELETED = "FILE_DELETED"
    DEPARTMENT_CREATED = "DEPARTMENT_CREATED"
    DEPARTMENT_UPDATED = "DEPARTMENT_UPDATED"
    DEPARTMENT_DELETED = "DEPARTMENT_DELETED"
    USER_UPDATED = "USER_UPDATED"
    USER_DELETED = "USER_DELETED"
