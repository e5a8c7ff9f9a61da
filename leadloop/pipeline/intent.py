"""
Heuristic intent classifier: the cheap tier.

Weighted buyer / seller phrase tables decide BUYER, SELLER or AMBIGUOUS.
Sentences containing a buyer phrase are kept as proof lines, and the proof is
valid only when it asks for an editing role (not a setter, VA, copywriter...).

Matching is plain substring containment on the lowercased text, so short
phrases such as 'vs' or 'va' also fire inside longer words.
"""
import re
from dataclasses import dataclass, field
from typing import List, Tuple

BUYER_HINTS: List[Tuple[str, int]] = [
    ('looking for', 2),
    ('need an editor', 3),
    ('editor needed', 3),
    ('need someone to edit', 3),
    ('hiring', 3),
    ('hire', 2),
    ('seeking', 2),
    ('outsourcing', 2),
    ('looking to outsource', 3),
    ('budget', 2),
    ('paid', 2),
    ('rate', 2),
    ('retainer', 2),
    ('recommend', 1),
    ('anyone know', 1),
]

SELLER_HINTS: List[Tuple[str, int]] = [
    ('for hire', 4),
    ('available for work', 4),
    ('available for hire', 4),
    ('open for work', 4),
    ('my services', 3),
    ('portfolio', 3),
    ('showreel', 3),
    ('dm me', 2),
    ('contact us', 3),
    ('contact me', 3),
    ('book a call', 4),
    ('schedule a call', 4),
    ('get a quote', 3),
    ('pricing', 2),
    ('our services', 3),
    ('we help', 2),
    ('case studies', 2),
    ('testimonials', 2),
    ('agency', 1),
    ('clients', 1),
]

EDITING_ROLE_TERMS = [
    'video editor',
    'editor',
    'shorts editor',
    'reels editor',
    'tiktok editor',
    'podcast editor',
    'post production',
    'capcut',
    'premiere',
    'after effects',
]

BUYER_ASK_TERMS = ['looking for', 'need', 'editor needed', 'hiring', 'hire', 'seeking', 'budget', 'paid', 'rate']

NON_EDITING_ROLE_TERMS = [
    'affiliate',
    'growth specialist',
    'media buyer',
    'ads manager',
    'appointment setter',
    'setter',
    'closer',
    'virtual assistant',
    'va',
    'social media manager',
    'community manager',
    'thumbnail',
    'scriptwriter',
    'copywriter',
]

INTENT_CLASSES = ('BUYER', 'SELLER', 'AMBIGUOUS')
MAX_PROOF_LINES = 5

_SENTENCE_SPLIT = re.compile(r'(?<=[.!?])\s+')


@dataclass
class IntentVerdict:
    intent_class: str
    confidence: float
    buyer_score: float = 0
    seller_score: float = 0
    reasons: List[str] = field(default_factory=list)
    proof_lines: List[str] = field(default_factory=list)
    proof_ok: bool = False
    role_match: bool = False
    role_mismatch: bool = False

    def to_dict(self):
        return {
            'intent_class': self.intent_class,
            'confidence': self.confidence,
            'buyer_score': self.buyer_score,
            'seller_score': self.seller_score,
            'reasons': list(self.reasons),
            'proof_lines': list(self.proof_lines),
            'proof_ok': self.proof_ok,
            'role_match': self.role_match,
            'role_mismatch': self.role_mismatch,
        }


@dataclass
class ProofCheck:
    proof_ok: bool
    role_match: bool
    role_mismatch: bool


def _weighted_hits(raw: str, hints: List[Tuple[str, int]]) -> int:
    return sum(weight for phrase, weight in hints if phrase in raw)


def _unique(items):
    seen = set()
    out = []
    for item in items:
        if item not in seen:
            seen.add(item)
            out.append(item)
    return out


def extract_proof_lines(text: str, phrases: List[str]) -> List[str]:
    """Sentences containing any of the phrases, deduplicated, in order."""
    sentences = [s.strip() for s in _SENTENCE_SPLIT.split(text or '')]
    hits = [s for s in sentences if s and any(p in s.lower() for p in phrases)]
    return _unique(hits)


def evaluate_buyer_ask_proof(proof_lines: List[str]) -> ProofCheck:
    joined = '\n'.join(proof_lines).lower()
    buyer_ask = any(t in joined for t in BUYER_ASK_TERMS)
    role_match = any(t in joined for t in EDITING_ROLE_TERMS)
    role_mismatch = any(t in joined for t in NON_EDITING_ROLE_TERMS) and not role_match
    return ProofCheck(
        proof_ok=buyer_ask and role_match and not role_mismatch,
        role_match=role_match,
        role_mismatch=role_mismatch,
    )


def classify_intent(text: str) -> IntentVerdict:
    raw = (text or '').lower()
    reasons = []

    buyer = _weighted_hits(raw, BUYER_HINTS)
    seller = _weighted_hits(raw, SELLER_HINTS)
    if buyer > 0:
        reasons.append('BUYER_HINTS')
    if seller > 0:
        reasons.append('SELLER_HINTS')

    intent_class = 'AMBIGUOUS'
    if buyer >= 4 and seller <= 1:
        intent_class = 'BUYER'
    if seller >= 5 and buyer <= 1:
        intent_class = 'SELLER'
    if buyer >= 4 and seller >= 4:
        intent_class = 'BUYER' if buyer >= seller else 'SELLER'

    gap = abs(buyer - seller)
    magnitude = buyer + seller
    confidence = min(1.0, gap / 6 + (0.25 if magnitude > 0 else 0))

    proof_lines = extract_proof_lines(text, [phrase for phrase, _ in BUYER_HINTS])[:MAX_PROOF_LINES]
    proof = evaluate_buyer_ask_proof(proof_lines)
    if proof.proof_ok:
        reasons.append('PROOF_OK')
    if proof.role_mismatch:
        reasons.append('ROLE_MISMATCH')

    return IntentVerdict(
        intent_class=intent_class,
        confidence=confidence,
        buyer_score=buyer,
        seller_score=seller,
        reasons=reasons,
        proof_lines=proof_lines,
        proof_ok=proof.proof_ok,
        role_match=proof.role_match,
        role_mismatch=proof.role_mismatch,
    )
