"""Try-on prompt construction for multi-reference FLUX 2 Klein rendering."""


def _span(start: int, count: int) -> str:
    """Human label for a run of reference positions, e.g. 'reference image 3' or 'reference images 3-4'."""
    if count == 1:
        return f"reference image {start}"
    return f"reference images {start}-{start + count - 1}"


VOLUMETRIC_DIRECTIONS = (
    "Render the result as a high-fidelity 3D fashion simulation in the style of CLO3D "
    "or Marvelous Designer: precise fabric draping physics, visible stretch and "
    "compression zones, clearance between body and fabric at key fit points, stronger "
    "shadows and ambient occlusion in seams, and a hyper-realistic scanned-avatar look."
)

STUDIO_DIRECTIONS = (
    "Drape fabric naturally with realistic wrinkles and folds, use soft studio lighting "
    "with consistent shadows, place the person full body and centered on a clean neutral "
    "gray or white seamless backdrop, at magazine lookbook quality."
)


class TryOnPromptBuilder:
    """Builds the FLUX prompt for one top x bottom combination.

    Reference images are chained in a fixed order (body photos, top, bottom,
    accessories), so the prompt names each group by its positions.
    """

    def build(
        self,
        body_count: int,
        top_count: int,
        bottom_count: int,
        accessory_count: int = 0,
        volumetric_mode: bool = False,
    ) -> str:
        """Return the prompt text.

        Args:
            body_count: Number of body reference photos (at least 1)
            top_count: Number of top/shirt reference photos (at least 1)
            bottom_count: Number of bottom/pants reference photos (at least 1)
            accessory_count: Number of accessory photos, shared by every look
            volumetric_mode: Render as a 3D fit simulation instead of a studio photo
        """
        if min(body_count, top_count, bottom_count) < 1:
            raise ValueError("Body, top and bottom each need at least one reference image")

        body_refs = _span(1, body_count)
        top_refs = _span(1 + body_count, top_count)
        bottom_refs = _span(1 + body_count + top_count, bottom_count)

        parts = [
            f"Keep the exact same person from {body_refs}, preserving their face, hair, "
            f"skin tone, body shape, proportions and pose exactly.",
            f"Dress them in the top shown in {top_refs}, mapped onto the torso, arms and "
            f"shoulders with its exact colors, patterns, logos and fabric texture.",
            f"Dress them in the bottoms shown in {bottom_refs}, mapped onto the hips and legs "
            f"with proper waist fit, leg drape and realistic creasing at knees and thighs.",
        ]

        if accessory_count:
            accessory_refs = _span(1 + body_count + top_count + bottom_count, accessory_count)
            parts.append(
                f"Add the accessories shown in {accessory_refs} in natural, functional positions "
                f"(glasses on the nose bridge, bags on the shoulder or in hand, watches on the wrist), "
                f"keeping their original colors and materials."
            )
        else:
            parts.append("Do not add any accessories.")

        parts.append(VOLUMETRIC_DIRECTIONS if volumetric_mode else STUDIO_DIRECTIONS)
        parts.append(
            "The person should look identical except for wearing these clothes. "
            "Generate one photorealistic image."
        )
        return " ".join(parts)
