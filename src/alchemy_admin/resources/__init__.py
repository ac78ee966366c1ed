from .db import ModelResource
from .statements import Statement, compile_statement, delete_statement, insert_statement, list_statement, \
    select_by_id, update_statement
