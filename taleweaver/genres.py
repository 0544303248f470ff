"""Genre catalogue for new adventures.

Each genre carries the opening action sent to the story generator on the
first turn. Every opening asks for an original premise and bans the genre's
stock openings, so two runs of the same genre start differently.
"""

from pydantic import BaseModel


class Genre(BaseModel):
    id: str
    name: str
    description: str
    opening_prompt: str


DEFAULT_OPENING = (
    "Begin a new fantasy adventure. The player wakes in a mysterious ancient forest. "
    'Opening quest: "Find out who you are."'
)

_ORIGINALITY = (
    "Write an opening that is completely UNIQUE and ORIGINAL. Do NOT use clichés such as {cliches}. "
    "{hook}"
)


def _genre(id: str, name: str, description: str, theme: str, cliches: str, hook: str) -> Genre:
    return Genre(
        id=id,
        name=name,
        description=description,
        opening_prompt=f"Genre: {theme}.\n" + _ORIGINALITY.format(cliches=cliches, hook=hook),
    )


GENRES: list[Genre] = [
    _genre(
        "fantasy", "Fantasy", "Kingdoms, magic and legendary creatures",
        "FANTASY (kingdoms, magic, legendary creatures, a magical world)",
        '"waking in a forest with no memory" or "the village is attacked by monsters"',
        "Invent an unseen premise: a unique location, a character with an unexpected past "
        "and a surprising opening conflict. Hook the player from the first sentence.",
    ),
    _genre(
        "horror", "Horror", "Terror, dark mysteries and fear",
        "HORROR (psychological terror, dark mystery, fear, the supernatural)",
        '"an old hospital", "a haunted house" or "waking up somewhere dark"',
        "Find a fresh horror premise in an unusual setting with a unique threat and a "
        "dreadful atmosphere from the start.",
    ),
    _genre(
        "adventure", "Adventure", "Exploration, treasure and danger",
        "ADVENTURE (exploration, treasure, danger, a wide world)",
        '"finding a treasure map" or "landing on a mysterious island"',
        "Give an unusual reason to set out, an unexpected starting place and a hook that "
        "makes the player want to explore.",
    ),
    _genre(
        "scifi", "Sci-Fi", "Space, technology and the future",
        "SCI-FI (space, advanced technology, the future, aliens)",
        '"waking from cryo-sleep" or "the ship alarm goes off"',
        "Set it on a planet, a station, a colony, a cyberpunk city or another dimension. "
        "The hero need not be an astronaut.",
    ),
    _genre(
        "mystery", "Mystery", "Puzzles, investigation and secrets",
        "MYSTERY (puzzles, investigation, hidden secrets, plot twists)",
        '"a murder in a mansion" or "a body in a locked room"',
        "Start from a strange disappearance, a small conspiracy that grows, or an everyday "
        "oddity hiding a big secret.",
    ),
    _genre(
        "romance", "Romance", "Love, drama and relationships",
        "ROMANCE (love, emotional drama, relationships, deep feelings)",
        '"bumping into a stranger" or "an arranged marriage"',
        "Build an unusual first meeting with real stakes for both characters.",
    ),
    _genre(
        "pirate", "Pirates", "Oceans, ships and sea raiders",
        "PIRATES (open sea, ships, raiders, hidden coves)",
        '"a mutiny on deck" or "buried pirate gold"',
        "Give the hero an unexpected role aboard and a voyage with a surprising purpose.",
    ),
    _genre(
        "postapocalyptic", "Post-Apocalyptic", "A ruined world and survival",
        "POST-APOCALYPTIC (a ruined world, scarce resources, survival)",
        '"leaving the bunker for the first time" or "raiders attack the camp"',
        "Invent an unusual cause for the collapse and a community with strange customs.",
    ),
    _genre(
        "mythology", "Mythology", "Gods, legends and ancient powers",
        "MYTHOLOGY (gods, legends, ancient powers)",
        '"chosen by a god" or "a prophecy names the hero"',
        "Draw on a lesser-known pantheon and give the hero a personal stake in the divine.",
    ),
    _genre(
        "survival", "Survival", "Staying alive in the wild",
        "SURVIVAL (the wilderness, hunger, weather, hard choices)",
        '"a plane crash" or "lost on a hike"',
        "Strand the hero in an unusual environment with one unexpected resource.",
    ),
    _genre(
        "steampunk", "Steampunk", "Steam engines, brass and invention",
        "STEAMPUNK (steam machines, brass, airships, inventors)",
        '"a stolen blueprint" or "an airship crash"',
        "Build the opening around a peculiar invention and the society it changed.",
    ),
    _genre(
        "samurai", "Samurai", "Bushido, honour and battle",
        "SAMURAI (bushido, honour, clans, duels)",
        '"avenging a murdered master" or "a ronin enters a village"',
        "Open on a dilemma of honour that has no clean answer.",
    ),
    _genre(
        "underwater", "Underwater World", "The deep ocean and its wonders",
        "UNDERWATER WORLD (the deep ocean, sunken cities, sea creatures)",
        '"a submarine loses power" or "finding Atlantis"',
        "Make the deep itself strange: new creatures, new physics, new peoples.",
    ),
    _genre(
        "detective", "Noir Detective", "Crime, investigation and a dark city",
        "NOIR DETECTIVE (crime, investigation, a dark rainy city)",
        '"a femme fatale walks into the office" or "a mob boss is murdered"',
        "Start with a case that looks small and personal but is not.",
    ),
    _genre(
        "comedy", "Comedy", "Funny, absurd and entertaining",
        "COMEDY (absurd situations, witty characters, light mischief)",
        '"a mix-up of identical twins" or "a talking animal sidekick"',
        "Open on an absurd problem the hero takes completely seriously.",
    ),
    _genre(
        "zombie", "Zombie", "An outbreak and survival",
        "ZOMBIE (an outbreak, the undead, survival)",
        '"waking in a hospital after the outbreak" or "a bite hidden from the group"',
        "Show the outbreak from an unusual place or an unusual point of view.",
    ),
]

_BY_ID = {g.id: g for g in GENRES}


def get_genre(genre_id: str) -> Genre | None:
    return _BY_ID.get(genre_id)


def opening_action(genre_id: str | None) -> str:
    """Opening action for a genre, or the default fantasy opening when none is picked."""
    if genre_id is None:
        return DEFAULT_OPENING
    genre = get_genre(genre_id)
    if genre is None:
        raise KeyError(genre_id)
    return genre.opening_prompt
