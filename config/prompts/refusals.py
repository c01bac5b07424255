"""Canned responses returned instead of calling the model.

Used when the query asks about something the vector store has no evidence
for and a free-form model answer would risk inventing facts.
"""

from __future__ import annotations

CASE_NOT_FOUND = """I don't have specific information about "{case_name}" in my legal database.

To get accurate information about this case, I recommend:
1. Searching SAFLII (South African Legal Information Institute) at www.saflii.org
2. Consulting a qualified South African attorney
3. Checking legal databases like LexisNexis or Juta

I cannot provide information about cases that aren't in my verified sources, as legal accuracy is paramount."""

UNRECOGNISED_CONCEPT = """I don't have information about that legal concept in my database.

The term you mentioned doesn't appear in my verified South African legal sources. It's possible this is not a recognised legal doctrine, or I simply don't have information about it.

For accurate information, I recommend:
1. Consulting a qualified South African attorney
2. Searching SAFLII (www.saflii.org) for authoritative legal information
3. Checking academic legal resources

I cannot explain legal concepts that aren't in my verified sources."""

TOPIC_NOT_FOUND = """I don't have specific case law about that topic in my legal database.

To find relevant South African cases, I recommend:
1. Searching SAFLII (South African Legal Information Institute) at www.saflii.org
2. Consulting a qualified South African attorney
3. Checking legal databases like LexisNexis or Juta

I cannot provide case citations without verified sources, as legal accuracy is paramount."""
