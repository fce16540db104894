"""
AppData service core.

Verifies the identity behind each request and keeps a small per-user JSON
document (AppFolder data) in sync between the shared cache and the user's
private Google Drive application folder.

- app.auth: Bearer verification, code exchange and token sources.
- app.cache: Retryable cache gateway and its Redis backend.
- app.appfolder: Drive client and the Get/Store synchronization logic.
- app.dependencies: FastAPI glue mapping credentials and errors to HTTP.

Design notes:
- Module import must not perform network calls.
- Configuration, HTTP clients and the cache backend are injected; nothing
  request-scoped lives in module globals.
- The verified identity is passed explicitly to every operation.
"""
