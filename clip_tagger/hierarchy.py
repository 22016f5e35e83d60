"""
Static tag hierarchy used to add broader category tags.
"""

from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Tuple


def _build_hierarchy() -> Dict[str, Tuple[str, ...]]:
    m: Dict[str, Tuple[str, ...]] = {}

    people = [
        "man", "woman", "child", "baby", "boy", "girl", "teenager", "adult", "senior",
        "crowd", "family", "couple", "portrait", "self-portrait", "face", "hands", "feet", "candid",
    ]
    for child in people:
        m[child] = ("person", "people")
    m["boy"] = ("person", "people", "child")
    m["girl"] = ("person", "people", "child")
    m["teenager"] = ("person", "people", "child")

    animals = [
        "dog", "cat", "bird", "horse", "cow", "sheep", "pig", "goat", "chicken", "duck", "lion",
        "tiger", "bear", "wolf", "fox", "deer", "elephant", "giraffe", "zebra", "monkey", "panda",
        "snake", "lizard", "turtle", "frog", "fish", "shark", "whale", "dolphin", "insect",
    ]
    for child in animals:
        m[child] = ("animal",)
    m["dog"] = ("animal", "pet")
    m["cat"] = ("animal", "pet")
    m["puppy"] = ("animal", "pet", "dog")
    m["kitten"] = ("animal", "pet", "cat")
    m["lion"] = ("animal", "wildlife", "cat")
    m["tiger"] = ("animal", "wildlife", "cat")
    m["butterfly"] = ("animal", "insect")
    m["bee"] = ("animal", "insect")
    m["spider"] = ("animal", "insect")

    nature = [
        "mountain", "hill", "valley", "canyon", "desert", "forest", "jungle", "tree", "flower",
        "field", "meadow", "grass", "farm", "garden", "park", "beach", "coast", "ocean", "sea",
        "river", "lake", "waterfall", "island", "cave", "rock", "volcano", "glacier", "snow",
    ]
    for child in nature:
        m[child] = ("nature", "landscape")
    m["rose"] = ("nature", "landscape", "flower")
    m["tulip"] = ("nature", "landscape", "flower")
    m["sunflower"] = ("nature", "landscape", "flower")
    m["pine tree"] = ("nature", "landscape", "tree")
    m["palm tree"] = ("nature", "landscape", "tree")

    m["sunrise"] = ("sky", "sun")
    m["sunset"] = ("sky", "sun")
    m["aurora"] = ("sky", "night sky")
    m["milky way"] = ("sky", "night sky", "galaxy")

    architecture = [
        "skyscraper", "bridge", "tunnel", "house", "home", "apartment", "cabin", "castle",
        "church", "cathedral", "tower", "lighthouse", "ruins", "monument", "statue", "fountain",
        "door", "window", "interior", "room",
    ]
    for child in architecture:
        m[child] = ("architecture", "building")
    m["cityscape"] = ("city", "urban", "architecture")
    m["skyline"] = ("city", "urban", "architecture")
    m["street"] = ("city", "urban")

    vehicles = [
        "car", "bicycle", "motorcycle", "bus", "train", "airplane", "boat", "ship", "truck",
        "van", "scooter",
    ]
    for child in vehicles:
        m[child] = ("vehicle",)

    food = [
        "fruit", "apple", "banana", "orange", "vegetable", "carrot", "broccoli", "tomato",
        "bread", "cake", "pizza", "pasta", "sushi", "burger", "sandwich", "salad", "soup",
    ]
    for child in food:
        m[child] = ("food",)
    m["apple"] = ("food", "fruit")
    m["banana"] = ("food", "fruit")
    m["orange"] = ("food", "fruit")
    m["carrot"] = ("food", "vegetable")
    m["broccoli"] = ("food", "vegetable")
    m["tomato"] = ("food", "vegetable", "fruit")
    for drink in ("coffee", "tea", "juice", "wine", "beer"):
        m[drink] = ("drink",)

    m["macro"] = ("close-up",)
    m["sepia"] = ("monochrome",)
    m["black and white"] = ("monochrome",)
    m["golden hour"] = ("lighting", "sunrise", "sunset")
    m["blue hour"] = ("lighting", "sunrise", "sunset")
    m["backlighting"] = ("lighting", "silhouette")
    m["drone shot"] = ("aerial view",)
    return m


TAG_HIERARCHY: Mapping[str, Tuple[str, ...]] = MappingProxyType(_build_hierarchy())


def ancestors(tag: str) -> Tuple[str, ...]:
    """Return the ancestor tags of ``tag`` (empty when it has none)."""
    return TAG_HIERARCHY.get(tag, ())


def expand_tags(tags: Iterable[str], exclude: Iterable[str] = ()) -> List[str]:
    """Ancestors of ``tags`` in order, skipping anything in ``tags`` or ``exclude``."""
    tags = list(tags)
    seen = set(tags) | set(exclude)
    expanded: List[str] = []
    for tag in tags:
        for parent in ancestors(tag):
            if parent not in seen:
                seen.add(parent)
                expanded.append(parent)
    return expanded
