"""Helpers for reading raw CWL group snapshots.

A snapshot is the cached league-group payload for one clan and one season.
Wars live either under rounds[].warTags[] or, in older files, a flat
warTags[] list. Entries that are still bare war-tag strings have not been
fetched yet and carry no data.
"""

from pipeline.io_helpers import bare_tag


def extract_wars(snapshot):
    """All fetched, non-preparation wars in a snapshot, in round order."""
    wars = []
    rounds = snapshot.get("rounds")
    if isinstance(rounds, list):
        for rnd in rounds:
            war_tags = rnd.get("warTags") if isinstance(rnd, dict) else None
            if isinstance(war_tags, list):
                wars.extend(war_tags)
    elif isinstance(snapshot.get("warTags"), list):
        wars.extend(snapshot["warTags"])

    return [
        w for w in wars
        if isinstance(w, dict) and w.get("state") != "preparation"
    ]


def war_sides(war, clan_tag):
    """(own, opponent) sides of a war from clan_tag's point of view.

    Returns None when clan_tag plays on neither side.
    """
    clan = war.get("clan") or {}
    opponent = war.get("opponent") or {}
    tag = bare_tag(clan_tag)
    if bare_tag(clan.get("tag")) == tag:
        return clan, opponent
    if bare_tag(opponent.get("tag")) == tag:
        return opponent, clan
    return None


def member_th(member):
    """Town hall level under either API spelling, None when unknown or zero."""
    return member.get("townhallLevel") or member.get("townHallLevel") or None


def side_attacks(side):
    """Every attack made by members of one side."""
    for member in side.get("members") or []:
        for attack in member.get("attacks") or []:
            yield attack
