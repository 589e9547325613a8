"""Storage package

Marks `manabee.storage` as a proper Python package. Callers normally only
need `manabee.storage.facade.build_storage`.
"""
