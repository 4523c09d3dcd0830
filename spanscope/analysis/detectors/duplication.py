from __future__ import annotations
from collections import Counter, defaultdict
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple
from hashlib import blake2b
import math

import networkx as nx
from networkx.utils import UnionFind

from spanscope.parsing.ir import (
    DuplicateGroup, DuplicateKind, Fingerprint, NameCollision, NearPair, Span, SpanKind, Token, TokenKind,
)
from spanscope.parsing.structure import owned_tokens

# ---- Fingerprints ----
def normalize(tokens: Iterable[Token]) -> List[str]:
    out: List[str] = []
    for t in tokens:
        if t.kind is TokenKind.IDENTIFIER:
            out.append("ID")
        elif t.kind is TokenKind.LITERAL:
            out.append(t.literal or "STR")
        elif t.significant:
            out.append(t.text)
    return out


def shingle_hash(window: Sequence[str]) -> int:
    digest = blake2b(" ".join(window).encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big")


def shingles(canonical: List[str], k: int = 5) -> Tuple[int, ...]:
    if len(canonical) < k:
        return ()
    return tuple(sorted({shingle_hash(canonical[i:i + k]) for i in range(len(canonical) - k + 1)}))


def jaccard(a: Sequence[int], b: Sequence[int]) -> float:
    sa, sb = set(a), set(b)
    uni = len(sa | sb)
    return len(sa & sb) / uni if uni else 0.0


def fingerprint(tokens: Sequence[Token], span: Span, children: Iterable[Span], k: int = 5) -> Fingerprint:
    canonical = normalize(owned_tokens(tokens, span, children))
    return Fingerprint(
        span_id=span.id,
        file_id=span.file_id,
        start=span.start,
        canonical=" ".join(canonical),
        token_count=len(canonical),
        shingles=shingles(canonical, k),
    )


def fingerprinted(span: Span) -> bool:
    # namespace / extern blocks are containers; their own tokens are just braces
    return span.kind is not SpanKind.BLOCK


# ---- Grouping ----
def _order(fps: Mapping[str, Fingerprint]):
    return lambda sid: (fps[sid].file_id, fps[sid].start, sid)


def exact_classes(fingerprints: Sequence[Fingerprint]) -> List[List[str]]:
    """Span ids sharing a canonical string, each class ordered by (file, offset)."""
    by_id = {fp.span_id: fp for fp in fingerprints}
    first_with: Dict[str, str] = {}
    uf = UnionFind()
    for fp in fingerprints:
        uf[fp.span_id]
        seen = first_with.setdefault(fp.canonical, fp.span_id)
        if seen != fp.span_id:
            uf.union(seen, fp.span_id)
    key = _order(by_id)
    classes = [sorted(members, key=key) for members in uf.to_sets()]
    classes.sort(key=lambda members: key(members[0]))
    return classes


def _prefix_length(size: int, threshold: float) -> int:
    return size - math.ceil(threshold * size - 1e-9) + 1


def near_pairs(sets: Sequence[Tuple[int, ...]], threshold: float) -> List[Tuple[int, int, float]]:
    """Index pairs (i, j, similarity) with Jaccard above `threshold`.

    Sets are visited smallest first; a set is only compared with earlier sets
    that are large enough to reach the threshold and that share one of the
    rarest shingles in its prefix.
    """
    df = Counter(h for s in sets for h in s)
    ordered = [sorted(s, key=lambda h: (df[h], h)) for s in sets]
    visit = sorted((i for i in range(len(sets)) if sets[i]), key=lambda i: (len(sets[i]), i))

    anchors: Dict[int, List[int]] = defaultdict(list)
    out: List[Tuple[int, int, float]] = []
    for i in visit:
        size = len(sets[i])
        prefix = ordered[i][:_prefix_length(size, threshold)]
        seen = set()
        for h in prefix:
            for j in anchors[h]:
                if j in seen or len(sets[j]) < threshold * size:
                    continue
                seen.add(j)
                sim = jaccard(sets[i], sets[j])
                if sim > threshold:
                    a, b = (i, j) if i < j else (j, i)
                    out.append((a, b, sim))
        for h in prefix:
            anchors[h].append(i)
    out.sort()
    return out


def group_duplicates(
    fingerprints: Iterable[Fingerprint],
    threshold: float = 0.8,
    near: bool = True,
) -> List[DuplicateGroup]:
    fps = sorted(fingerprints, key=lambda fp: (fp.file_id, fp.start, fp.span_id))
    by_id = {fp.span_id: fp for fp in fps}
    key = _order(by_id)
    classes = exact_classes(fps)

    groups: List[DuplicateGroup] = []
    for members in classes:
        if len(members) >= 2:
            groups.append(DuplicateGroup(
                kind=DuplicateKind.EXACT,
                representative=members[0],
                members=tuple(members),
                similarity=1.0,
            ))

    if near:
        # one node per exact class; identical canonical strings have identical shingles
        sets = [by_id[members[0]].shingles for members in classes]
        graph = nx.Graph()
        for a, b, sim in near_pairs(sets, threshold):
            graph.add_edge(a, b, similarity=sim)
        for component in nx.connected_components(graph):
            nodes = sorted(component)
            members = sorted((sid for n in nodes for sid in classes[n]), key=key)
            pairs = sorted((
                NearPair(*sorted((classes[a][0], classes[b][0]), key=key), similarity=data["similarity"])
                for a, b, data in graph.subgraph(nodes).edges(data=True)
            ), key=lambda p: (key(p.first), key(p.second)))
            groups.append(DuplicateGroup(
                kind=DuplicateKind.NEAR,
                representative=members[0],
                members=tuple(members),
                similarity=min(p.similarity for p in pairs),
                pairs=tuple(pairs),
            ))

    groups.sort(key=lambda g: (key(g.representative), g.kind.value))
    return groups


# ---- Name collisions ----
def name_collisions(spans: Iterable[Span], ignored: Iterable[str] = ()) -> List[NameCollision]:
    """Function names defined in more than one file."""
    skip = set(ignored)
    by_name: Dict[str, List[Span]] = defaultdict(list)
    for span in spans:
        if span.kind is not SpanKind.FUNCTION or span.name == "<lambda>" or span.name in skip:
            continue
        by_name[span.name].append(span)

    out: List[NameCollision] = []
    for name in sorted(by_name):
        found = sorted(by_name[name], key=lambda s: (s.file_id, s.start, s.id))
        files = sorted({s.file_id for s in found})
        if len(files) >= 2:
            out.append(NameCollision(name=name, span_ids=tuple(s.id for s in found), file_ids=tuple(files)))
    return out
