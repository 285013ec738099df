"""
Static marketing content for the landing page.

Plain data, no persistence: the landing view only selects a section and
hands these structures to the template.
"""

from __future__ import annotations

SECTIONS = ("accueil", "chapitres", "exercices")
DEFAULT_SECTION = "accueil"

NAVIGATION_ITEMS = [
    {"id": "accueil", "titre": "Accueil", "icone": "BookOpen"},
    {"id": "chapitres", "titre": "Chapitres", "icone": "BookMarked"},
    {"id": "exercices", "titre": "Exercices", "icone": "PenTool"},
    {"id": "examens", "titre": "Examens Blancs", "icone": "GraduationCap"},
    {"id": "progression", "titre": "Progression", "icone": "Trophy"},
]

HERO = {
    "badge": "Plateforme N°1 au Maroc",
    "titre": "Excellez en",
    "titre_accent": "Mathématiques",
    "sous_titre": (
        "La plateforme la plus complète pour réussir votre 2 BAC Sciences Mathématiques. "
        "Cours détaillés, exercices progressifs et examens blancs authentiques."
    ),
    "cta": "Commencer Maintenant",
    "cta_secondaire": "Voir les Résultats",
}

QUICK_STATS = [
    {"label": "Étudiants", "value": "3.2K+", "icon": "Users"},
    {"label": "Exercices", "value": "500+", "icon": "PenTool"},
    {"label": "Réussite", "value": "94%", "icon": "Trophy"},
    {"label": "Satisfaction", "value": "4.9/5", "icon": "Star"},
]

PREMIUM_STATS = [
    {"titre": "Chapitres Complets", "valeur": "24", "description": "Programme officiel 2 BAC",
     "icone": "BookOpen", "couleur": "blue"},
    {"titre": "Exercices Variés", "valeur": "500+", "description": "Tous niveaux de difficulté",
     "icone": "PenTool", "couleur": "emerald"},
    {"titre": "Examens Blancs", "valeur": "15", "description": "Conditions réelles",
     "icone": "GraduationCap", "couleur": "purple"},
    {"titre": "Taux de Réussite", "valeur": "94%", "description": "Étudiants satisfaits",
     "icone": "Trophy", "couleur": "orange"},
]

CHAPTER_PREVIEWS = [
    {
        "id": "analyse",
        "titre": "Analyse Mathématique",
        "description": "Maîtrisez les concepts fondamentaux de l'analyse",
        "sous_titres": ["Limites et Continuité", "Dérivabilité", "Étude de Fonctions",
                        "Primitives et Intégrales"],
        "couleur": "blue",
        "icone": "TrendingUp",
        "progression": 85,
        "exercices": 120,
        "temps": "45h",
    },
    {
        "id": "algebre",
        "titre": "Algèbre Avancée",
        "description": "Explorez les structures algébriques complexes",
        "sous_titres": ["Nombres Complexes", "Arithmétique", "Structures Algébriques", "Polynômes"],
        "couleur": "emerald",
        "icone": "Calculator",
        "progression": 72,
        "exercices": 95,
        "temps": "38h",
    },
    {
        "id": "geometrie",
        "titre": "Géométrie dans l'Espace",
        "description": "Visualisez et résolvez en trois dimensions",
        "sous_titres": ["Géométrie Euclidienne", "Géométrie Analytique", "Transformations",
                        "Sections Planes"],
        "couleur": "purple",
        "icone": "Target",
        "progression": 58,
        "exercices": 87,
        "temps": "42h",
    },
    {
        "id": "probabilites",
        "titre": "Probabilités & Statistiques",
        "description": "Analysez l'incertain avec précision",
        "sous_titres": ["Probabilités Conditionnelles", "Variables Aléatoires",
                        "Lois de Probabilité", "Statistiques"],
        "couleur": "orange",
        "icone": "BarChart3",
        "progression": 43,
        "exercices": 76,
        "temps": "35h",
    },
]

EXERCISE_LEVELS = [
    {"niveau": "Débutant", "nombre": 180, "description": "Bases solides", "icone": "Star",
     "couleur": "emerald"},
    {"niveau": "Intermédiaire", "nombre": 220, "description": "Progression rapide", "icone": "Target",
     "couleur": "blue"},
    {"niveau": "Avancé", "nombre": 100, "description": "Excellence garantie", "icone": "Brain",
     "couleur": "purple"},
]

FEATURED_EXERCISES = [
    {"titre": "Limites de fonctions - Formes indéterminées", "chapitre": "Analyse",
     "points": "8 pts", "difficulte": "Moyen"},
    {"titre": "Nombres Complexes - Forme exponentielle", "chapitre": "Algèbre",
     "points": "10 pts", "difficulte": "Avancé"},
    {"titre": "Géométrie dans l'Espace - Sections planes", "chapitre": "Géométrie",
     "points": "12 pts", "difficulte": "Avancé"},
]


def resolve_section(name: str | None) -> str:
    """Map a requested section to one the page can render."""
    return name if name in SECTIONS else DEFAULT_SECTION
