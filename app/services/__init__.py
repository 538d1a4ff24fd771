# Services package.
#
# Each module exposes async functions holding the business logic and
# database access for one aggregate:
#
#   comment_service  — visibility-filtered, paginated comment listing; create
#   post_service     — post visibility, listing, create/update with tags
#   tag_service      — tag create/list
#   user_service     — user create/lookup
#
# All service functions take an AsyncSession as their first argument so
# the router layer controls the transaction boundary via ``get_db``.
# Failures are raised as app.errors.JsonApiError subclasses.
