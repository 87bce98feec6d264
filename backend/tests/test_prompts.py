import pytest

from archivision.core import prompts
from archivision.core.errors import ImageUnavailable
from archivision.models.render import (
    Annotation,
    AspectRatio,
    EnvironmentMode,
    FurnitureLayoutMode,
    MaterialMapping,
    MaterialMode,
    NormalizedImage,
    RenderParameters,
    RenderStyle,
)

from conftest import make_png


@pytest.fixture
def sketch() -> NormalizedImage:
    return NormalizedImage(data=make_png(1024, 768), mime_type="image/png")


def _image(tag: int) -> NormalizedImage:
    return NormalizedImage(data=make_png(8, 8, color=(tag, tag, tag)), mime_type="image/jpeg")


def test_text_prompt_exterior_request_has_two_parts(sketch):
    params = RenderParameters(
        mode=EnvironmentMode.EXTERIOR,
        material_mode=MaterialMode.TEXT_PROMPT,
        material_prompt="exposed concrete and glass",
    )

    request = prompts.assemble_render_request(params, sketch)

    assert len(request.parts) == 2
    assert request.parts[0].inline_data.data == sketch.data
    assert request.parts[1].text is not None
    assert "exposed concrete and glass" in request.text
    assert prompts.GEOMETRY_LOCK in request.text
    assert "ENVIRONMENT & LANDSCAPE: " + params.landscape_prompt in request.text
    assert request.aspect_ratio == "4:3"


def test_color_map_keeps_every_complete_rule_including_duplicates(sketch):
    params = RenderParameters(
        material_mode=MaterialMode.COLOR_MAP,
        material_mappings=[
            MaterialMapping(color="Red", material="Brick"),
            MaterialMapping(color="Red", material="Terracotta"),
            MaterialMapping(color="Blue", material=""),
            MaterialMapping(color="Red", material="Brick"),
        ],
    )

    text = prompts.assemble_render_request(params, sketch).text

    assert text.count('- Color "Red" matches Material "Brick"') == 2
    assert text.count('- Color "Red" matches Material "Terracotta"') == 1
    assert 'Color "Blue"' not in text


def test_color_map_textures_are_referenced_by_part_index(sketch):
    params = RenderParameters(
        material_mode=MaterialMode.COLOR_MAP,
        material_mappings=[
            MaterialMapping(color="Red", material="Brick", texture_image="ref"),
            MaterialMapping(color="Blue", material="Glass"),
            MaterialMapping(color="Green", material="Oak", texture_image="ref"),
        ],
    )
    aux = {prompts.texture_key(0): _image(1), prompts.texture_key(2): _image(2)}

    request = prompts.assemble_render_request(params, sketch, aux)

    assert len(request.parts) == 4
    assert request.parts[1].inline_data.data == aux[prompts.texture_key(0)].data
    assert request.parts[2].inline_data.data == aux[prompts.texture_key(2)].data
    assert 'Use Image #1 as the physical texture reference for "Brick"' in request.text
    assert 'Use Image #2 as the physical texture reference for "Oak"' in request.text


def test_reference_image_strategy(sketch):
    params = RenderParameters(
        material_mode=MaterialMode.REFERENCE_IMAGE,
        material_prompt="warmer wood tones",
    )
    request = prompts.assemble_render_request(params, sketch, {prompts.MATERIAL_REFERENCE: _image(3)})

    assert request.image_count == 2
    assert "Use Image #1 as the PRIMARY reference" in request.text
    assert "ADDITIONAL NOTES: warmer wood tones" in request.text
    assert "GLOBAL MATERIAL SPECIFICATIONS" not in request.text


def test_reference_image_strategy_without_image_uses_text_prompt(sketch):
    params = RenderParameters(material_mode=MaterialMode.REFERENCE_IMAGE, material_prompt="travertine")
    request = prompts.assemble_render_request(params, sketch)

    assert len(request.parts) == 2
    assert "GLOBAL MATERIAL SPECIFICATIONS & FINISHES:\ntravertine" in request.text


def test_site_photo_supersedes_landscape_text(sketch):
    params = RenderParameters(landscape_prompt="desert dunes at dusk")
    request = prompts.assemble_render_request(params, sketch, {prompts.SITE_PICTURE: _image(4)})

    assert request.image_count == 2
    assert "SITE CONTEXT: Use Image #1" in request.text
    assert "ground plane" in request.text
    assert "desert dunes at dusk" not in request.text


def test_site_photo_ignored_for_interiors(sketch):
    params = RenderParameters(mode=EnvironmentMode.INTERIOR, interior_ambiance="candle light")
    request = prompts.assemble_render_request(params, sketch, {prompts.SITE_PICTURE: _image(4)})

    assert request.image_count == 1
    assert "INTERIOR AMBIANCE: candle light" in request.text
    assert "INTERIOR REALIZATION" in request.text
    assert "Do not invent new doors, windows, openings or walls" in request.text


def test_interior_staging_of_empty_shell(sketch):
    params = RenderParameters(
        mode=EnvironmentMode.INTERIOR,
        furniture_layout_mode=FurnitureLayoutMode.EMPTY,
        furniture_prompt="a long oak dining table",
    )
    request = prompts.assemble_render_request(
        params, sketch, {prompts.FURNITURE_INSPIRATION: _image(5)}
    )

    assert request.image_count == 2
    assert "VIRTUAL STAGING OF AN EMPTY SPACE" in request.text
    assert '"a long oak dining table"' in request.text
    assert "Use Image #1 as the stylistic reference" in request.text


def test_interior_furniture_replacement(sketch):
    params = RenderParameters(mode=EnvironmentMode.INTERIOR, furniture_layout_mode=FurnitureLayoutMode.EXISTING)
    request = prompts.assemble_render_request(
        params, sketch, {prompts.FURNITURE_INSPIRATION: _image(5)}
    )

    assert "FURNITURE REPLACEMENT" in request.text
    assert "Restyle the existing furniture to match Image #1" in request.text


def test_image_indices_follow_material_then_context_order(sketch):
    params = RenderParameters(
        mode=EnvironmentMode.INTERIOR,
        material_mode=MaterialMode.REFERENCE_IMAGE,
        furniture_layout_mode=FurnitureLayoutMode.EMPTY,
    )
    aux = {prompts.MATERIAL_REFERENCE: _image(6), prompts.FURNITURE_INSPIRATION: _image(7)}
    request = prompts.assemble_render_request(params, sketch, aux)

    assert request.parts[1].inline_data.data == aux[prompts.MATERIAL_REFERENCE].data
    assert request.parts[2].inline_data.data == aux[prompts.FURNITURE_INSPIRATION].data
    assert "Use Image #1 as the PRIMARY reference" in request.text
    assert "Use Image #2 as the stylistic reference" in request.text


def test_trailing_block_restates_style_and_quality(sketch):
    params = RenderParameters(style=RenderStyle.BRUTALIST, description="riverside gallery")
    text = prompts.assemble_render_request(params, sketch).text

    assert "photorealistic Brutalist render" in text
    assert "ARCHITECTURAL STYLE: Brutalist." in text
    assert "PROJECT NOTES: riverside gallery" in text
    assert text.rstrip().endswith(prompts.OUTPUT_QUALITY)


def test_explicit_aspect_ratio_wins(sketch):
    params = RenderParameters(aspect_ratio=AspectRatio.TALL)
    assert prompts.assemble_render_request(params, sketch).aspect_ratio == "9:16"


@pytest.mark.parametrize("size,expected", [
    ((1920, 1080), "16:9"),
    ((1080, 1920), "9:16"),
    ((1024, 1024), "1:1"),
    ((1024, 768), "4:3"),
    ((768, 1024), "3:4"),
    ((2000, 1000), "16:9"),
])
def test_nearest_aspect_ratio(size, expected):
    assert prompts.nearest_aspect_ratio(*size) == expected


def test_auto_aspect_ratio_needs_decodable_sketch():
    broken = NormalizedImage(data=b"tiny")
    with pytest.raises(ImageUnavailable):
        prompts.resolve_aspect_ratio(AspectRatio.AUTO, broken)
    assert prompts.resolve_aspect_ratio(AspectRatio.SQUARE, broken) == "1:1"


def test_edit_request_lists_rounded_regions():
    base = NormalizedImage(data=make_png(8, 8))
    annotations = [
        Annotation(x=10, y=10, width=20, height=20, label="glass"),
        Annotation(x=50.4, y=49.6, width=10.2, height=9.7, label="brick"),
    ]

    request = prompts.assemble_edit_request(base, "swap the facade materials", annotations)

    assert len(request.parts) == 2
    text = request.parts[1].text
    assert 'Region 1 "glass": x=10%, y=10%, width=20%, height=20%' in text
    assert 'Region 2 "brick": x=50%, y=50%, width=10%, height=10%' in text
    assert prompts.EDIT_REGION_CONSTRAINT in text
    assert text.startswith("Edit this image: swap the facade materials.")


def test_edit_request_without_regions_has_no_box_constraint():
    base = NormalizedImage(data=make_png(8, 8))
    text = prompts.assemble_edit_request(base, "add evening light").parts[1].text

    assert "Region" not in text
    assert prompts.EDIT_REGION_CONSTRAINT not in text


def test_masked_edit_request_has_three_parts():
    base = NormalizedImage(data=make_png(8, 8))
    mask = NormalizedImage(data=make_png(8, 8, color=(0, 0, 0)))

    request = prompts.assemble_masked_edit_request(base, mask, "replace the door with glass")

    assert len(request.parts) == 3
    assert request.parts[0].inline_data.data == base.data
    assert request.parts[1].inline_data.data == mask.data
    text = request.parts[2].text
    assert "WHITE area of the mask is the only editable area" in text
    assert "BLACK area of the mask must stay exactly identical" in text
    assert "replace the door with glass" in text


def test_upscale_request_targets_4k():
    request = prompts.assemble_upscale_request(NormalizedImage(data=make_png(8, 8)))

    assert request.image_size == "4K"
    assert len(request.parts) == 2
    assert "Do not hallucinate new objects" in request.text
