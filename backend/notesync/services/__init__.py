"""
NoteSync Backend — Services Layer
===================================

Service Inventory:
    - paths.derive_path: image storage path from (identity, note id, file name)
    - RecordGateway / SqlRecordGateway: note records (create, list, delete)
    - StorageGateway / LocalStorageGateway: image bytes and temporary URLs
    - NoteSynchronizer: refresh / create / delete orchestration for one user
    - SynchronizerRegistry: one synchronizer per signed-in identity
    - FileService: image upload validation
"""
