"""Identity & access package

Import submodules directly (`manabee.identity_access.auth_service`); this
package module stays empty so storage ports can import the domain without a
cycle.
"""
