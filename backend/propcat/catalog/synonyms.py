"""Static synonym table and query-term expansion.

SYNONYMS maps a canonical catalog term to alternate names people search
with. Expansion works three ways:

- forward: "couch" is canonical, so its synonyms are added;
- reverse: "settee" is listed under "sofa", "couch" and "bench", so those
  canonicals and their other synonyms are added;
- stem: "shelves" -> "shelf", plus the stem's own synonyms.
"""

from __future__ import annotations

from functools import lru_cache

from rapidfuzz import process
from rapidfuzz.distance import Levenshtein

SYNONYMS: dict[str, list[str]] = {
    # Seating
    "sofa": ["couch", "settee", "loveseat", "divan", "davenport", "sectional"],
    "couch": ["sofa", "settee", "loveseat", "sectional"],
    "chair": ["seat", "armchair", "recliner", "lounger"],
    "armchair": ["chair", "recliner", "lounge chair"],
    "recliner": ["armchair", "lounger", "lazy boy"],
    "stool": ["barstool", "bar stool", "footstool", "ottoman"],
    "bench": ["seat", "pew", "settee"],
    "ottoman": ["footstool", "pouf", "hassock"],
    "beanbag": ["bean bag", "floor cushion"],
    "rocker": ["rocking chair", "glider"],
    "swing": ["porch swing", "hanging chair"],

    # Tables
    "table": ["desk", "counter", "surface"],
    "desk": ["table", "workstation", "bureau", "writing desk"],
    "counter": ["countertop", "bar", "worktop", "bartop", "checkout", "service counter", "reception"],
    "nightstand": ["bedside table", "night table", "end table", "bedside"],
    "coffee table": ["cocktail table", "center table"],
    "dining table": ["dinner table", "kitchen table"],
    "end table": ["side table", "accent table", "nightstand"],
    "console": ["console table", "hallway table", "entry table"],
    "workbench": ["work table", "craft table", "workshop table"],
    "picnic table": ["outdoor table", "patio table"],

    # Storage & cabinets
    "cabinet": ["cupboard", "closet", "wardrobe", "armoire", "storage"],
    "cupboard": ["cabinet", "closet", "pantry"],
    "wardrobe": ["closet", "armoire", "cabinet", "clothes cabinet"],
    "dresser": ["chest", "bureau", "drawers", "chest of drawers"],
    "shelf": ["shelving", "bookshelf", "rack", "ledge"],
    "bookcase": ["bookshelf", "shelf", "shelving", "book rack"],
    "drawer": ["drawers", "chest", "filing"],
    "locker": ["cabinet", "storage", "compartment"],
    "crate": ["box", "container", "storage"],
    "trunk": ["chest", "storage box", "footlocker"],
    "safe": ["vault", "strongbox", "lockbox"],
    "filing cabinet": ["file cabinet", "drawer", "office storage"],
    "pantry": ["cupboard", "larder", "food storage"],
    "hutch": ["buffet", "sideboard", "china cabinet"],
    "sideboard": ["buffet", "credenza", "hutch"],

    # Beds & bedroom
    "bed": ["mattress", "bunk", "cot", "sleeping"],
    "mattress": ["bed", "foam", "sleeping pad"],
    "bunk": ["bunkbed", "bunk bed", "loft bed"],
    "crib": ["cot", "baby bed", "cradle"],
    "futon": ["sofa bed", "sleeper", "convertible"],
    "headboard": ["bed frame", "bedhead"],
    "pillow": ["cushion", "throw pillow"],
    "blanket": ["comforter", "duvet", "throw", "quilt"],

    # Lighting
    "lamp": ["light", "lantern", "fixture", "lighting"],
    "light": ["lamp", "lighting", "fixture", "chandelier", "bulb"],
    "chandelier": ["light", "fixture", "pendant", "hanging light"],
    "sconce": ["wall light", "fixture", "wall lamp"],
    "pendant": ["hanging light", "chandelier", "drop light"],
    "spotlight": ["spot", "track light", "accent light"],
    "floodlight": ["flood", "outdoor light", "security light"],
    "neon": ["neon sign", "led sign", "light sign"],
    "candle": ["candlestick", "taper", "pillar"],
    "lantern": ["lamp", "light", "hurricane lamp"],
    "torch": ["flashlight", "light"],
    "streetlight": ["street lamp", "lamppost", "light pole"],
    "fairy lights": ["string lights", "christmas lights", "twinkle lights"],

    # Decor & art
    "rug": ["carpet", "mat", "runner", "area rug"],
    "carpet": ["rug", "mat", "flooring", "floor covering"],
    "curtain": ["drape", "blind", "shade", "window treatment"],
    "blind": ["curtain", "shade", "shutter", "window blind"],
    "mirror": ["glass", "looking glass", "vanity mirror"],
    "plant": ["flower", "pot", "planter", "greenery", "houseplant"],
    "vase": ["pot", "planter", "vessel", "urn"],
    "picture": ["painting", "artwork", "frame", "poster", "photo"],
    "painting": ["picture", "artwork", "art", "canvas"],
    "poster": ["picture", "print", "artwork", "wall art"],
    "clock": ["timepiece", "watch", "wall clock"],
    "statue": ["sculpture", "figurine", "bust"],
    "sculpture": ["statue", "figurine", "art piece"],
    "trophy": ["award", "cup", "medal"],
    "flag": ["banner", "pennant"],
    "tapestry": ["wall hanging", "textile art"],
    "wreath": ["garland", "decoration"],
    "ornament": ["decoration", "decor", "trinket"],

    # Electronics & appliances
    "tv": ["television", "screen", "monitor", "flatscreen"],
    "television": ["tv", "screen", "monitor", "telly"],
    "monitor": ["screen", "tv", "display", "computer screen"],
    "computer": ["pc", "desktop", "laptop", "workstation"],
    "laptop": ["computer", "notebook", "portable"],
    "phone": ["telephone", "mobile", "cell", "landline"],
    "radio": ["stereo", "speaker", "receiver", "boombox"],
    "speaker": ["stereo", "audio", "sound system", "subwoofer"],
    "printer": ["copier", "fax", "scanner"],
    "fan": ["ventilator", "cooling", "ceiling fan"],
    "ac": ["air conditioner", "air conditioning", "hvac", "cooling"],
    "heater": ["radiator", "heating", "space heater"],
    "projector": ["beamer", "display"],

    # Kitchen
    "fridge": ["refrigerator", "freezer", "cooler", "icebox"],
    "refrigerator": ["fridge", "freezer", "cooler"],
    "stove": ["oven", "range", "cooker", "cooktop", "burner"],
    "oven": ["stove", "range", "cooker"],
    "microwave": ["oven", "micro"],
    "sink": ["basin", "washbasin", "wash basin"],
    "dishwasher": ["washer", "dish washer"],
    "toaster": ["toaster oven"],
    "blender": ["mixer", "food processor"],
    "kettle": ["teapot", "pot"],
    "coffee maker": ["coffee machine", "espresso", "brewer"],
    "pot": ["pan", "cookware", "saucepan"],
    "pan": ["pot", "skillet", "frying pan"],

    # Bathroom
    "toilet": ["wc", "commode", "lavatory", "loo", "john"],
    "shower": ["bath", "tub", "shower stall"],
    "bathtub": ["tub", "bath", "shower", "jacuzzi"],
    "towel": ["cloth", "linen", "bath towel"],
    "soap": ["dispenser", "hand soap"],
    "medicine cabinet": ["bathroom cabinet", "vanity"],
    "vanity": ["bathroom sink", "wash stand"],

    # Outdoor & garden
    "grill": ["bbq", "barbecue", "smoker"],
    "bbq": ["grill", "barbecue"],
    "umbrella": ["parasol", "shade", "beach umbrella"],
    "fence": ["barrier", "railing", "wall", "fencing"],
    "gate": ["door", "entrance", "entry"],
    "pool": ["swimming pool", "hot tub", "jacuzzi"],
    "fountain": ["water feature", "pond"],
    "hammock": ["swing", "lounger"],
    "planter": ["pot", "flower pot", "plant pot"],
    "lawn chair": ["deck chair", "patio chair", "outdoor chair"],
    "fire pit": ["firepit", "campfire", "outdoor fire"],
    "shed": ["storage shed", "garden shed", "outbuilding"],
    "mailbox": ["letterbox", "post box"],
    "birdbath": ["bird bath", "bird feeder"],
    "gazebo": ["pergola", "pavilion", "canopy"],

    # Office & commercial
    "office chair": ["desk chair", "task chair", "swivel chair"],
    "cubicle": ["partition", "divider", "office divider"],
    "whiteboard": ["board", "marker board", "dry erase"],
    "bulletin board": ["cork board", "notice board", "pin board"],
    "podium": ["lectern", "stand", "pulpit"],
    "register": ["cash register", "pos", "checkout"],
    "reception desk": ["front desk", "welcome desk"],
    "display case": ["showcase", "glass case", "vitrine"],
    "rack": ["shelf", "display rack", "stand"],
    "mannequin": ["dummy", "display dummy", "form"],
    "atm": ["cash machine", "bank machine"],
    "vending machine": ["vending", "snack machine", "drink machine"],

    # Industrial & utility
    "barrel": ["drum", "keg", "cask", "container"],
    "pallet": ["skid", "platform"],
    "ladder": ["step ladder", "steps", "staircase"],
    "scaffold": ["scaffolding", "platform"],
    "toolbox": ["tool chest", "tool cabinet"],
    "workstation": ["work area", "desk", "station"],
    "conveyor": ["belt", "conveyor belt"],
    "generator": ["power generator", "genset"],
    "tank": ["container", "reservoir", "cistern"],
    "pipe": ["piping", "tube", "conduit"],
    "vent": ["ventilation", "duct", "air vent"],
    "dumpster": ["bin", "trash", "garbage"],
    "trash can": ["garbage can", "bin", "waste basket", "rubbish bin"],

    # Medical & hospital
    "hospital bed": ["medical bed", "patient bed", "gurney"],
    "gurney": ["stretcher", "hospital bed", "medical bed"],
    "wheelchair": ["chair", "mobility"],
    "iv stand": ["drip stand", "infusion stand"],
    "examination table": ["exam table", "medical table"],
    "defibrillator": ["aed", "defib"],
    "oxygen tank": ["o2 tank", "medical tank"],

    # Bar & restaurant
    "bar": ["counter", "pub", "bartop"],
    "barstool": ["bar stool", "stool", "high chair"],
    "booth": ["seating", "banquette"],
    "keg": ["barrel", "beer keg"],
    "tap": ["beer tap", "draft", "draught"],
    "menu board": ["chalkboard", "specials board"],
    "wine rack": ["bottle rack", "wine storage"],

    # Doors & windows
    "door": ["entry", "entrance", "doorway", "gate"],
    "window": ["glass", "pane", "glazing"],
    "shutter": ["blind", "window cover"],
    "screen": ["screen door", "mesh"],
    "awning": ["canopy", "shade", "overhang"],

    # Wall & floor
    "wallpaper": ["wall covering", "wall decor"],
    "tile": ["flooring", "ceramic", "porcelain"],
    "hardwood": ["wood floor", "wooden floor", "parquet"],
    "vinyl": ["linoleum", "lino", "flooring"],
    "baseboard": ["skirting", "molding", "trim"],
    "crown molding": ["molding", "trim", "cornice"],

    # Materials & finishes
    "wooden": ["wood", "timber", "oak", "pine", "mahogany", "walnut"],
    "wood": ["wooden", "timber", "lumber"],
    "metal": ["steel", "iron", "aluminum", "chrome", "brass"],
    "steel": ["metal", "iron", "stainless"],
    "glass": ["crystal", "transparent", "glazed"],
    "leather": ["vinyl", "faux leather", "pleather", "hide"],
    "fabric": ["cloth", "textile", "upholstery"],
    "plastic": ["polymer", "acrylic", "pvc"],
    "marble": ["stone", "granite", "quartz"],
    "concrete": ["cement", "stone"],
    "wicker": ["rattan", "bamboo", "cane"],
    "velvet": ["velour", "plush"],

    # Styles & aesthetics
    "modern": ["contemporary", "minimalist", "sleek"],
    "vintage": ["retro", "antique", "classic", "old"],
    "rustic": ["country", "farmhouse", "rural", "cottage"],
    "industrial": ["factory", "loft", "urban"],
    "minimalist": ["modern", "simple", "clean"],
    "traditional": ["classic", "conventional", "timeless"],
    "bohemian": ["boho", "eclectic", "hippie"],
    "scandinavian": ["nordic", "scandi", "swedish"],
    "mid-century": ["midcentury", "retro", "50s", "60s"],
    "art deco": ["deco", "gatsby", "1920s"],
    "victorian": ["antique", "ornate", "classic"],
    "coastal": ["beach", "nautical", "seaside"],
    "luxury": ["premium", "high-end", "deluxe", "fancy"],

    # Colors
    "black": ["dark", "ebony", "noir"],
    "white": ["cream", "ivory", "off-white", "pearl"],
    "brown": ["tan", "beige", "chocolate", "coffee"],
    "gray": ["grey", "silver", "charcoal", "slate"],
    "red": ["crimson", "burgundy", "maroon", "scarlet"],
    "blue": ["navy", "azure", "cobalt", "teal"],
    "green": ["olive", "sage", "emerald", "forest"],
    "yellow": ["gold", "golden", "mustard"],
    "orange": ["tangerine", "amber", "rust"],
    "pink": ["rose", "blush", "salmon"],
    "purple": ["violet", "plum", "lavender", "mauve"],

    # Sizes
    "small": ["sm", "mini", "compact", "little", "tiny"],
    "medium": ["md", "mid", "regular", "standard"],
    "large": ["lg", "big", "oversized"],
    "xl": ["extra large", "xxl", "jumbo"],
    "tall": ["high", "long"],
    "short": ["low", "small"],
    "wide": ["broad", "spacious"],
    "narrow": ["slim", "thin"],

    # Common abbreviations & variants
    "sm": ["small"],
    "md": ["medium"],
    "lg": ["large"],
    "prop": ["furniture", "item", "object"],
}

_IRREGULAR_PLURALS = {
    "shelves": "shelf",
    "knives": "knife",
    "leaves": "leaf",
    "halves": "half",
    "loaves": "loaf",
    "children": "child",
    "men": "man",
    "women": "woman",
    "feet": "foot",
    "teeth": "tooth",
    "mice": "mouse",
}
_DOUBLED_CONSONANTS = frozenset("bcdfgklmnprstvz")


def normalize_query(text: str) -> str:
    """Lowercase, trim and collapse whitespace runs.

    str.lower rather than casefold: the result is compared with SQL lower(),
    which never expands characters (casefold turns "ß" into "ss").
    """
    return " ".join(text.lower().split())


def stem(word: str) -> str:
    """Strip common English plural and verb suffixes ("lamps" -> "lamp", "boxes" -> "box")."""
    word = word.strip().lower()
    if len(word) <= 3:
        return word
    if word in _IRREGULAR_PLURALS:
        return _IRREGULAR_PLURALS[word]
    if word.endswith("ies") and len(word) > 4:
        return word[:-3] + "y"
    if word.endswith("ves") and len(word) > 4:
        return word[:-3] + "f"
    if word.endswith("es"):
        base = word[:-2]
        if base.endswith(("x", "s", "ch", "sh", "o")):
            return base
    if word.endswith("s") and not word.endswith("ss"):
        return word[:-1]
    if word.endswith("ing") and len(word) > 5:
        base = word[:-3]
        if len(base) >= 2 and base[-1] == base[-2] and base[-1] in _DOUBLED_CONSONANTS:
            return base[:-1]
        return base
    if word.endswith("ed") and len(word) > 4:
        if word.endswith("ied"):
            return word[:-3] + "y"
        return word[:-2]
    return word


@lru_cache(maxsize=1)
def _reverse_index() -> dict[str, tuple[str, ...]]:
    reverse: dict[str, list[str]] = {}
    for canonical, synonyms in SYNONYMS.items():
        for synonym in synonyms:
            reverse.setdefault(synonym, []).append(canonical)
    return {synonym: tuple(canonicals) for synonym, canonicals in reverse.items()}


@lru_cache(maxsize=1)
def vocabulary() -> tuple[str, ...]:
    """Every canonical term and synonym, sorted."""
    words = set(SYNONYMS)
    for synonyms in SYNONYMS.values():
        words.update(synonyms)
    return tuple(sorted(words))


def expand_term(term: str) -> list[str]:
    """Expand one term; the term itself is always first."""
    term = normalize_query(term)
    if len(term) < 2:
        return [term]
    terms = [term]

    def add(candidates) -> None:
        for candidate in candidates:
            if candidate not in terms:
                terms.append(candidate)

    add(SYNONYMS.get(term, ()))
    for canonical in _reverse_index().get(term, ()):
        add([canonical])
        add(SYNONYMS.get(canonical, ()))
    stemmed = stem(term)
    if stemmed != term:
        add([stemmed])
        add(SYNONYMS.get(stemmed, ()))
    return terms


def expand_query(query: str, max_terms: int = 20) -> list[str]:
    """Ordered, de-duplicated search terms for a query.

    Multi-word queries keep the whole phrase first, then every word of two or
    more characters with its own expansion.
    """
    query = normalize_query(query)
    words = query.split()
    if len(words) <= 1:
        return expand_term(query)[:max_terms]

    terms: list[str] = [query] if len(query) >= 3 else []
    for word in words:
        if len(word) < 2:
            continue
        for term in expand_term(word):
            if term not in terms:
                terms.append(term)
    return terms[:max_terms]


def suggest(word: str) -> str | None:
    """Return a likely spelling fix for a word outside the vocabulary, or None.

    Only close typos qualify: edit distance 1 for words up to 5 characters
    (2 above that), and lengths within one character.
    """
    word = normalize_query(word)
    if len(word) < 3 or word in _vocabulary_set():
        return None
    match = process.extractOne(
        word,
        vocabulary(),
        scorer=Levenshtein.normalized_similarity,
        score_cutoff=0.8,
    )
    if match is None:
        return None
    candidate = match[0]
    max_distance = 1 if len(word) <= 5 else 2
    if Levenshtein.distance(word, candidate) > max_distance:
        return None
    if abs(len(word) - len(candidate)) > 1:
        return None
    return candidate


@lru_cache(maxsize=1)
def _vocabulary_set() -> frozenset[str]:
    return frozenset(vocabulary())
