# src/league_chat/services/__init__.py
"""Business logic services for the League Chat core.

Submodules are imported directly (``league_chat.services.messages`` and so
on); the repository layer depends on ``league_chat.services.errors``, so this
package does not import the services eagerly.
"""
