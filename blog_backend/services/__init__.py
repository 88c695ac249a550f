# Services package.
#
# The article engine is split into small modules, leaf first:
#
#   visibility      : role-based view/modify policy as composable predicates
#   tag_sync        : article <-> tag association reconciliation
#   article_query   : visibility + filters + sort + page window -> SQL
#   comment_tree    : flat comment rows -> reply forest
#   mappers         : ORM rows -> response schemas
#
# and two orchestrating services that the routers call:
#
#   article_service : list / lookup / create / update / delete / restore
#   comment_service : threaded comments, redaction and permanent removal
#
# Service functions take an AsyncSession first and return a ServiceResult;
# the router layer owns the transaction boundary via ``get_db``.
