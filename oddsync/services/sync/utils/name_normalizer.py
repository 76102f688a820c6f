"""Team name normalization and resolution to canonical NFL team codes.

Providers label the same franchise differently:
- Full names: "Kansas City Chiefs"
- City or nickname only: "Kansas City", "Chiefs"
- Legacy names: "Oakland Raiders", "Washington Football Team"
- Alternate codes: "WSH", "JAC"

TeamNameResolver maps any of these to one canonical code (e.g. "KC") by
trying progressively looser strategies; the first success wins.
"""
import logging
import re
import unicodedata
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


# Canonical code -> known name variants
NFL_TEAM_VARIANTS: Dict[str, List[str]] = {
    'ATL': ['Atlanta Falcons', 'ATL', 'Falcons', 'Atlanta'],
    'BUF': ['Buffalo Bills', 'BUF', 'Bills', 'Buffalo'],
    'CHI': ['Chicago Bears', 'CHI', 'Bears', 'Chicago'],
    'CIN': ['Cincinnati Bengals', 'CIN', 'Bengals', 'Cincinnati'],
    'CLE': ['Cleveland Browns', 'CLE', 'Browns', 'Cleveland'],
    'DAL': ['Dallas Cowboys', 'DAL', 'Cowboys', 'Dallas'],
    'DEN': ['Denver Broncos', 'DEN', 'Broncos', 'Denver'],
    'DET': ['Detroit Lions', 'DET', 'Lions', 'Detroit'],
    'GB': ['Green Bay Packers', 'GB', 'Packers', 'Green Bay'],
    'TEN': ['Tennessee Titans', 'TEN', 'Titans', 'Tennessee'],
    'IND': ['Indianapolis Colts', 'IND', 'Colts', 'Indianapolis'],
    'KC': ['Kansas City Chiefs', 'KC', 'Chiefs', 'Kansas City'],
    'LV': ['Las Vegas Raiders', 'LV', 'Raiders', 'Oakland Raiders', 'Las Vegas', 'Oakland'],
    'LAR': ['Los Angeles Rams', 'LAR', 'Rams', 'LA Rams', 'Los Angeles'],
    'MIA': ['Miami Dolphins', 'MIA', 'Dolphins', 'Miami'],
    'MIN': ['Minnesota Vikings', 'MIN', 'Vikings', 'Minnesota'],
    'NE': ['New England Patriots', 'NE', 'Patriots', 'New England'],
    'NO': ['New Orleans Saints', 'NO', 'Saints', 'New Orleans'],
    'NYG': ['New York Giants', 'NYG', 'Giants'],
    'NYJ': ['New York Jets', 'NYJ', 'Jets'],
    'PHI': ['Philadelphia Eagles', 'PHI', 'Eagles', 'Philadelphia'],
    'ARI': ['Arizona Cardinals', 'ARI', 'Cardinals', 'Arizona'],
    'PIT': ['Pittsburgh Steelers', 'PIT', 'Steelers', 'Pittsburgh'],
    'LAC': ['Los Angeles Chargers', 'LAC', 'Chargers', 'LA Chargers'],
    'SF': ['San Francisco 49ers', 'SF', '49ers', 'San Francisco'],
    'SEA': ['Seattle Seahawks', 'SEA', 'Seahawks', 'Seattle'],
    'TB': ['Tampa Bay Buccaneers', 'TB', 'Buccaneers', 'Tampa Bay'],
    'WAS': ['Washington Commanders', 'WAS', 'WSH', 'Commanders', 'Washington Football Team', 'Washington'],
    'CAR': ['Carolina Panthers', 'CAR', 'Panthers', 'Carolina'],
    'JAX': ['Jacksonville Jaguars', 'JAX', 'JAC', 'Jaguars', 'Jacksonville'],
    'BAL': ['Baltimore Ravens', 'BAL', 'Ravens', 'Baltimore'],
    'HOU': ['Houston Texans', 'HOU', 'Texans', 'Houston'],
}

LONG_VARIANT_MIN_LENGTH = 8
SHORT_VARIANT_MIN_LENGTH = 4
SIGNIFICANT_WORD_MIN_LENGTH = 3


def normalize_team_name(name: Optional[str]) -> str:
    """
    Normalize a team name for comparison.

    Steps:
    1. Strip accents
    2. Convert to uppercase
    3. Collapse whitespace

    Examples:
        >>> normalize_team_name("  kansas   city chiefs ")
        'KANSAS CITY CHIEFS'
    """
    if not name:
        return ""
    name = unicodedata.normalize('NFKD', name)
    name = ''.join(c for c in name if not unicodedata.combining(c))
    return re.sub(r'\s+', ' ', name.upper()).strip()


def _significant_words(name: str) -> List[str]:
    return [w for w in name.split(' ') if len(w) >= SIGNIFICANT_WORD_MIN_LENGTH]


class TeamNameResolver:
    """
    Resolve free-text team names to canonical codes.

    Strategies, in order (first success wins):
    1. Input is already a canonical code
    2. Exact variant match (case-insensitive)
    3. A variant is contained in the input (long variants first, longest wins)
    4. The input (4+ chars) is contained in a variant
    5. Two or more significant words shared with a multi-word variant
    6. Initialism of the input equals a code (last resort, logged)

    Unresolvable names return None. The resolver is pure and deterministic.
    """

    def __init__(self, team_variants: Optional[Dict[str, List[str]]] = None):
        self.team_variants = team_variants or NFL_TEAM_VARIANTS
        self.codes = frozenset(self.team_variants)
        # (code, normalized variant) pairs in table order
        self._variants: List[Tuple[str, str]] = [
            (code, normalize_team_name(variant))
            for code, variants in self.team_variants.items()
            for variant in variants
        ]
        self._exact: Dict[str, str] = {}
        for code, variant in self._variants:
            self._exact.setdefault(variant, code)

    def resolve(self, name: Optional[str]) -> Optional[str]:
        """
        Resolve a team name to its canonical code.

        Args:
            name: Team name as reported by a provider

        Returns:
            Canonical code (e.g. 'KC') or None
        """
        upper = normalize_team_name(name)
        if not upper:
            return None

        if upper in self.codes:
            return upper

        if upper in self._exact:
            return self._exact[upper]

        code = (
            self._match_contained_variant(upper, LONG_VARIANT_MIN_LENGTH)
            or self._match_contained_variant(upper, SHORT_VARIANT_MIN_LENGTH)
            or self._match_containing_variant(upper)
            or self._match_word_overlap(upper)
        )
        if code:
            return code

        code = self._match_initialism(upper)
        if code:
            logger.warning(f"Resolved team '{name}' to {code} by initialism - verify manually")
            return code

        logger.warning(f"Could not resolve team name: '{name}'")
        return None

    def resolve_pair(self, home: Optional[str], away: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
        return self.resolve(home), self.resolve(away)

    def _match_contained_variant(self, upper: str, min_length: int) -> Optional[str]:
        candidates = [
            (code, variant)
            for code, variant in self._variants
            if len(variant) >= min_length and variant in upper
        ]
        if not candidates:
            return None

        longest = max(len(variant) for _, variant in candidates)
        best = [(code, variant) for code, variant in candidates if len(variant) == longest]
        if len({code for code, _ in best}) > 1:
            logger.warning(
                f"Ambiguous team name '{upper}': matches {sorted({c for c, _ in best})}, using {best[0][0]}"
            )
        return best[0][0]

    def _match_containing_variant(self, upper: str) -> Optional[str]:
        if len(upper) < SHORT_VARIANT_MIN_LENGTH:
            return None

        codes = []
        for code, variant in self._variants:
            if upper in variant and code not in codes:
                codes.append(code)
        if not codes:
            return None
        if len(codes) > 1:
            logger.warning(f"Ambiguous team name '{upper}': contained in {codes}, using {codes[0]}")
        return codes[0]

    def _match_word_overlap(self, upper: str) -> Optional[str]:
        input_words = _significant_words(upper)
        if len(input_words) < 2:
            return None

        for code, variant in self._variants:
            variant_words = _significant_words(variant)
            if len(variant_words) < 2:
                continue
            shared = sum(1 for word in input_words if word in variant_words)
            if shared >= 2:
                return code
        return None

    def _match_initialism(self, upper: str) -> Optional[str]:
        words = upper.split(' ')
        if len(words) < 2:
            return None

        initialisms = [words[0][0] + words[1][0]]
        if len(words) >= 3:
            initialisms.append(words[0][0] + words[-1][0])

        for initialism in initialisms:
            if initialism in self.codes:
                return initialism
        return None
