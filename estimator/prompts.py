"""
Prompts for the plan-analysis vision calls.

All prompts are in French: the plans, the price references and the
people reading the budget are in Quebec.
"""

from typing import Dict, List, Optional

from .models import ClientContext
from .pricing import resolve_tier

QUALITY_DESCRIPTIONS: Dict[str, str] = {
    "economique": (
        "ÉCONOMIQUE - Matériaux entrée de gamme: plancher flottant 8mm, armoires mélamine, "
        "comptoirs stratifiés, portes creuses"
    ),
    "standard": (
        "STANDARD - Bon rapport qualité-prix: bois franc ingénierie, armoires semi-custom, "
        "quartz, portes MDF pleines"
    ),
    "haut-de-gamme": (
        "HAUT DE GAMME - Finitions luxueuses: bois franc massif, armoires sur mesure, "
        "granite/marbre, portes massives"
    ),
}

# Client-form material ids -> labels shown to the model
MATERIAL_LABELS: Dict[str, Dict[str, str]] = {
    "exteriorSiding": {
        "vinyle": "Revêtement vinyle",
        "canexel": "Canexel / Fibrociment",
        "bois": "Bois naturel",
        "brique": "Brique",
        "pierre": "Pierre / Placage de pierre",
        "aluminium": "Aluminium",
        "mixte": "Mixte (plusieurs matériaux)",
    },
    "roofingType": {
        "bardeau-asphalte": "Bardeau d'asphalte standard",
        "bardeau-architectural": "Bardeau architectural",
        "metal": "Tôle / Métal",
        "elastomere": "Membrane élastomère (toit plat)",
        "tpo-epdm": "TPO / EPDM (toit plat)",
    },
    "windowType": {
        "pvc-standard": "Fenêtres PVC standard double vitrage",
        "pvc-triple": "Fenêtres PVC triple vitrage",
        "aluminium": "Fenêtres aluminium",
        "pvc-alu": "Fenêtres PVC/Aluminium (PVC int, alu ext)",
        "bois": "Fenêtres bois massif",
    },
    "insulationType": {
        "laine-standard": "Laine isolante standard",
        "laine-haute-densite": "Laine haute densité",
        "polyurethane": "Polyuréthane giclé",
        "cellulose": "Cellulose soufflée",
        "panneau-rigide": "Panneaux rigides (SIP)",
    },
    "heatingType": {
        "plinthes": "Chauffage par plinthes électriques",
        "thermopompe-murale": "Thermopompe murale",
        "thermopompe-centrale": "Thermopompe centrale",
        "plancher-radiant": "Plancher radiant électrique",
        "plancher-radiant-hydro": "Plancher radiant hydronique",
        "bi-energie": "Bi-énergie (fournaise + thermopompe)",
        "geothermie": "Géothermie",
    },
    "flooringType": {
        "flottant-stratifie": "Plancher flottant stratifié",
        "vinyle-luxe": "Vinyle de luxe (LVP)",
        "bois-ingenierie": "Bois d'ingénierie",
        "bois-franc": "Bois franc massif",
        "ceramique": "Céramique / Porcelaine",
        "beton-poli": "Béton poli",
    },
    "cabinetType": {
        "melamine": "Armoires mélamine",
        "polyester": "Armoires polymère / polyester",
        "thermoplastique": "Armoires thermoplastique",
        "laque": "Armoires laque / acrylique",
        "bois-massif": "Armoires bois massif",
        "sur-mesure-haut-gamme": "Armoires sur mesure haut de gamme",
    },
    "countertopType": {
        "stratifie": "Comptoirs stratifiés",
        "quartz": "Comptoirs quartz",
        "granit": "Comptoirs granit",
        "marbre": "Comptoirs marbre",
        "bois-boucher": "Comptoirs bloc de boucher (bois)",
        "beton": "Comptoirs béton",
        "dekton": "Comptoirs Dekton / Ultra-compact",
    },
}

_MATERIAL_HEADINGS = (
    ("exteriorSiding", "REVÊTEMENT EXTÉRIEUR"),
    ("roofingType", "TOITURE"),
    ("windowType", "FENÊTRES"),
    ("insulationType", "ISOLATION"),
    ("heatingType", "CHAUFFAGE/CVAC"),
    ("flooringType", "PLANCHER"),
    ("cabinetType", "ARMOIRES CUISINE"),
    ("countertopType", "COMPTOIRS"),
)

MONOLITHIC_SLAB = "dalle-monolithique"


SYSTEM_PROMPT = """Tu es un ESTIMATEUR PROFESSIONNEL QUÉBÉCOIS spécialisé en AUTOCONSTRUCTION (sans entrepreneur général).

MISSION: lire les plans de construction fournis et produire une estimation détaillée aux prix du marché Québec 2025.

## LECTURE DES PLANS
- Lis TOUTES les notes, légendes, cotes et tableaux de fenêtres/portes.
- Repère les indications "existant" / "nouveau" (pointillés, trait plein, légende).
- Calcule le PÉRIMÈTRE en pieds linéaires: 2 x (longueur + largeur).
  Semelles, murs de fondation et murs extérieurs se calculent à partir du périmètre.

## CATÉGORIES DE RÉFÉRENCE
Fondation, Structure, Toiture, Revêtement extérieur, Fenêtres et portes,
Isolation et pare-air, Électricité, Plomberie, Chauffage/CVAC,
Finition intérieure, Cuisine, Salle de bain.
Utilise exactement ces noms lorsque la catégorie correspond.

## RÈGLES
- Prix du marché Québec 2025 pour l'autoconstruction.
- Ratio main-d'œuvre / matériaux entre 35% et 50% selon le métier.
- Taux horaires selon la CCQ.
- Chaque item indique sa source ("Page X" ou "Estimé") et sa confiance (haute, moyenne, basse).
- Signale ce qui manque, ce qui est ambigu et ce qui est incohérent.

## FORMAT
Réponds UNIQUEMENT avec du JSON strict, sans markdown ni texte autour:
{
  "extraction": {
    "type_projet": "CONSTRUCTION_NEUVE | AGRANDISSEMENT | RENOVATION | GARAGE | GARAGE_AVEC_ETAGE",
    "superficie_nouvelle_pi2": number,
    "nombre_etages": number,
    "categories": [
      {
        "nom": string,
        "items": [
          {
            "description": string,
            "quantite": number,
            "unite": "pi² | vg³ | ml | pi lin | pcs | unité | forfait",
            "dimension": string,
            "prix_unitaire": number,
            "total": number,
            "source": string,
            "confiance": "haute | moyenne | basse"
          }
        ],
        "sous_total_materiaux": number,
        "heures_main_oeuvre": number,
        "taux_horaire_CCQ": number,
        "sous_total_main_oeuvre": number,
        "sous_total_categorie": number
      }
    ],
    "elements_manquants": string[],
    "ambiguites": string[],
    "incoherences": string[]
  },
  "validation": {"alertes": string[]},
  "recommandations": string[],
  "resume_projet": string
}"""


EXTENSION_INSTRUCTION = """
## INSTRUCTION CRITIQUE - AGRANDISSEMENT
- Ce projet est un AGRANDISSEMENT (extension).
- IGNORE COMPLÈTEMENT le bâtiment existant: dimensions, pièces, fenêtres, toiture.
- Fondations: périmètre NEUF seulement, sans le mur mitoyen contre l'existant.
- Ajoute: jonction structurale, ouverture dans le mur existant (découpe + linteau),
  raccordements électriques/plomberie à l'existant, harmonisation des finitions.
- "superficie_nouvelle_pi2" = superficie de l'extension UNIQUEMENT.{area_check}
"""


def quality_label(tier: Optional[str]) -> str:
    return QUALITY_DESCRIPTIONS[resolve_tier(tier)]


def material_label(choice_key: str, value: Optional[str]) -> Optional[str]:
    """Human label for a client material id (the id itself when unknown)."""
    if not value:
        return None
    return MATERIAL_LABELS.get(choice_key, {}).get(value, value)


def material_choices_section(context: ClientContext) -> str:
    lines = []
    for choice_key, heading in _MATERIAL_HEADINGS:
        label = material_label(choice_key, context.material_choices.get(choice_key))
        if label:
            lines.append(f"- {heading}: {label}")
    if not lines:
        return ""
    return (
        "\n## CHOIX DE MATÉRIAUX SPÉCIFIÉS PAR LE CLIENT\n"
        + "\n".join(lines)
        + "\n\nIMPORTANT: Utilise CES matériaux pour l'estimation des coûts correspondants.\n"
    )


def garage_foundation_section(context: ClientContext) -> str:
    """Foundation guidance for garages (monolithic slab or standard walls)."""
    if not context.is_garage:
        return ""
    if context.garage_foundation_type != MONOLITHIC_SLAB:
        return (
            "\n## TYPE DE FONDATION GARAGE - FONDATION STANDARD\n"
            "Murs de fondation coulés, semelles sous les murs, dalle coulée séparément.\n"
        )

    area = context.foundation_sqft or context.square_footage or 576
    low, high = round(area * 25), round(area * 30)
    return f"""
## TYPE DE FONDATION GARAGE - DALLE MONOLITHIQUE (Québec 2025)
Fondation ET plancher en une seule coulée, épaisseur minimum 6 pouces.
- Superficie: {area:,.0f} pi²
- Dalle monolithique installée: 25$ à 30$/pi², soit {low:,}$ à {high:,}$
- Isolation rigide polystyrène: 2$ à 4$/pi²; excavation: 2$ à 5$/pi²; nivellement: 500$ à 1 500$
- EXCLURE: murs de fondation séparés, sous-sol, semelles traditionnelles
- INCLURE dans "Fondation": excavation, nivellement, gravier, isolation, armature, dalle
- Plomberie sous dalle: puisard de plancher (800$ à 2 000$)
"""


def client_context_section(context: ClientContext) -> str:
    lines: List[str] = []
    if context.project_type:
        lines.append(f"- Type de projet: {context.project_type}")
    if context.square_footage:
        lines.append(f"- Superficie estimée: {context.square_footage:,.0f} pi² (à vérifier avec les plans)")
    if context.number_of_floors:
        lines.append(f"- Nombre d'étages: {context.number_of_floors:g}")
    if context.has_garage:
        lines.append("- Garage inclus")
    if context.foundation_sqft:
        lines.append(f"- Fondation: {context.foundation_sqft:,.0f} pi²")
    if context.additional_notes:
        lines.append(f"\nSPÉCIFICATIONS DU CLIENT:\n{context.additional_notes}")
    if not lines:
        return ""
    return "\n## CONTEXTE CLIENT\n" + "\n".join(lines) + "\n"


def extension_section(context: ClientContext) -> str:
    if not context.is_extension:
        return ""
    area_check = ""
    if context.square_footage:
        area_check = (
            f"\n- Si la superficie dépasse {context.square_footage + 100:,.0f} pi², "
            "tu as inclus l'existant par erreur."
        )
    return EXTENSION_INSTRUCTION.format(area_check=area_check)


def build_page_prompt(
    page_number: int,
    total_pages: int,
    quality: Optional[str],
    context: Optional[ClientContext] = None
) -> str:
    """Prompt for one plan page."""
    context = context or ClientContext()
    return f"""Tu analyses la PAGE {page_number}/{total_pages} d'un ensemble de plans de construction au Québec.

QUALITÉ DE FINITION: {quality_label(quality)}
{client_context_section(context)}{material_choices_section(context)}{garage_foundation_section(context)}{extension_section(context)}
## OBJECTIF
- Extrais UNIQUEMENT ce qui est visible sur cette page (dimensions, quantités, matériaux).
- Si une catégorie n'est pas visible sur cette page, ne l'invente pas.
- Indique "source": "Page {page_number}" pour chaque item extrait.
- Limite la réponse pour éviter la troncature: maximum 6 catégories, maximum 8 items
  par catégorie (regroupe le reste en un item "Autres").
- Retourne le JSON strict décrit dans tes instructions."""


def build_manual_prompt(quality: Optional[str], context: Optional[ClientContext] = None) -> str:
    """Prompt for an estimate without plans, from the client context alone."""
    context = context or ClientContext()
    floors = ""
    if context.floor_sqft_details:
        floors = "\n- DÉTAIL ÉTAGES: " + ", ".join(f"{v:,.0f}" for v in context.floor_sqft_details) + " pi²"
    foundation = f"\n- FONDATION: {context.foundation_sqft:,.0f} pi²" if context.foundation_sqft else ""
    notes = ""
    if context.additional_notes:
        notes = (
            f"\n## NOTES ET SPÉCIFICATIONS DU CLIENT\n{context.additional_notes}\n"
            "Personnalise l'estimation selon ces notes.\n"
        )

    return f"""Génère une estimation budgétaire COMPLÈTE pour ce projet au QUÉBEC en 2025.

## PROJET À ESTIMER
- TYPE: {context.project_type or 'Maison unifamiliale'}
- ÉTAGES: {context.number_of_floors or 1:g}
- SUPERFICIE TOTALE: {context.square_footage or 1500:,.0f} pi²{foundation}{floors}
- GARAGE: {'Oui (attaché)' if context.has_garage else 'Non'}
- SALLES DE BAIN: {context.bathroom_count}
- QUALITÉ: {quality_label(quality)}
{material_choices_section(context)}{garage_foundation_section(context)}{extension_section(context)}{notes}
INSTRUCTIONS:
1. Retourne TOUTES les 12 catégories principales.
2. Utilise le MILIEU de la fourchette de prix pour la qualité choisie.
3. Inclus matériaux ET main-d'œuvre pour chaque catégorie.
4. Retourne le JSON strict décrit dans tes instructions."""
