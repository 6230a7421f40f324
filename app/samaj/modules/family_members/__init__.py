"""
Family Members module.

A primary account owns the family members of its sub-family. The first five
members are approved immediately; later ones wait for an admin. A member with
a mobile number or e-mail can get (or be linked to) a login account.
"""
