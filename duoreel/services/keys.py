"""
KV key layout.

- user:{uid}                          -> profile
- user:search:{email}                 -> {userId, name, email}
- liked:{uid}:{movieId}               -> full movie snapshot + timestamp
- like:{uid}:{movieId}                -> {movieId, timestamp}
- match:{uid}:{movieId}               -> movie snapshot + timestamp
- watched:{uid}:{movieId}             -> sanitized movie + rating + timestamp
- notinterested:{uid}:{movieId}       -> {movieId, timestamp}
- disliked:{uid}:{movieId}            -> {movieId, timestamp}
- notification:{uid}:{id}             -> notification
- notifications:unread:{uid}          -> int
- partner_request:{toUid}:{fromUid}   -> request
- invite:{code} / user-invite:{uid}   -> invite mapping (both directions)
- imdb_rating:{tmdbId}, imdb_rating_by_id:{imdbId}, imdb:{tmdbId}
- imdb:error:{tmdbId}                 -> negative cache
- omdb:usage:{YYYY-MM-DD}             -> daily counter
"""

from typing import Union

MovieId = Union[int, str]


def user(uid: str) -> str:
    return f"user:{uid}"


def user_search(email: str) -> str:
    return f"user:search:{email}"


USER_SEARCH_PREFIX = "user:search:"


def liked(uid: str, movie_id: MovieId) -> str:
    return f"liked:{uid}:{movie_id}"


def liked_prefix(uid: str) -> str:
    return f"liked:{uid}:"


def like(uid: str, movie_id: MovieId) -> str:
    return f"like:{uid}:{movie_id}"


def like_prefix(uid: str) -> str:
    return f"like:{uid}:"


def match(uid: str, movie_id: MovieId) -> str:
    return f"match:{uid}:{movie_id}"


def match_prefix(uid: str) -> str:
    return f"match:{uid}:"


def watched(uid: str, movie_id: MovieId) -> str:
    return f"watched:{uid}:{movie_id}"


def watched_prefix(uid: str) -> str:
    return f"watched:{uid}:"


def not_interested(uid: str, movie_id: MovieId) -> str:
    return f"notinterested:{uid}:{movie_id}"


def not_interested_prefix(uid: str) -> str:
    return f"notinterested:{uid}:"


def disliked(uid: str, movie_id: MovieId) -> str:
    return f"disliked:{uid}:{movie_id}"


def disliked_prefix(uid: str) -> str:
    return f"disliked:{uid}:"


def notification(uid: str, notification_id: str) -> str:
    return f"notification:{uid}:{notification_id}"


def notification_prefix(uid: str) -> str:
    return f"notification:{uid}:"


def unread_count(uid: str) -> str:
    return f"notifications:unread:{uid}"


def partner_request(to_uid: str, from_uid: str) -> str:
    return f"partner_request:{to_uid}:{from_uid}"


def partner_request_prefix(to_uid: str = "") -> str:
    return f"partner_request:{to_uid}:" if to_uid else "partner_request:"


def invite(code: str) -> str:
    return f"invite:{code}"


def user_invite(uid: str) -> str:
    return f"user-invite:{uid}"


def imdb_rating(tmdb_id: MovieId) -> str:
    return f"imdb_rating:{tmdb_id}"


def imdb_rating_by_id(imdb_id: str) -> str:
    return f"imdb_rating_by_id:{imdb_id}"


def imdb(tmdb_id: MovieId) -> str:
    return f"imdb:{tmdb_id}"


def imdb_error(tmdb_id: MovieId) -> str:
    return f"imdb:error:{tmdb_id}"


def omdb_usage(day: str) -> str:
    return f"omdb:usage:{day}"
