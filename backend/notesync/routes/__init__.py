# Routes package init
"""
NoteSync Backend — API Routes Package
=======================================

Route Inventory:
    - notes.py:    GET    /api/notes              (refresh)
                   POST   /api/notes              (create, multipart form)
                   DELETE /api/notes/{id}         (delete)
    - files.py:    GET    /api/files/{path}       (temporary image URLs)
    - session.py:  POST   /api/session/sign-out
    - health.py:   GET    /health

Routes stay thin: extract form data and identity, call the synchronizer,
format the response.
"""
