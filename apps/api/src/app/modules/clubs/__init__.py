"""
Clubs Module

Club catalogue plus the membership and leadership state machine:
1. Claim - an unclaimed club gets its first president (once, single winner)
2. Transfer - the president hands the role to another member
3. Role changes - the president assigns member/officer/vice_president
4. Join / Leave - the current president cannot leave

Invariants:
- A club is claimed exactly when it has a president
- At most one president membership per club, matching Club.president_id
- A claimed club never returns to unclaimed

API Endpoints: see router.py
"""

from .router import router

__all__ = ["router"]
