# File: slicegen/ui_templates.py
"""
slicegen - UI Templates
========================
Vue single-file components and the collection composable.

Produces:
    1. ``app/components/_Form.vue``     create / update / delete form
    2. ``app/components/List.vue``      collection table / list
    3. ``app/composables/use*.ts``      zod schema, columns, defaults, config
    4. ``app/components/{Field}/*.vue`` Input / Select / CardMini per repeater

Widget choice per field, first match wins:

    translatable            → folded into one CroutonI18nInput
    dependent               → CroutonFormDependentButtonGroup
    displayAs optionsSelect → USelect with derived {label, value} items
    options                 → USelectMenu of the raw values
    refTarget               → CroutonFormReferenceSelect
    otherwise               → the type's widget hint from the type map
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from slicegen.models import (
    ArtifactKind,
    CollectionDescriptor,
    EmittedArtifact,
    FieldDefinition,
    FieldType,
    GlobalConfig,
    NamingSet,
)
from slicegen.naming import CollectionRegistry
from slicegen.typemap import field_default, field_spec, field_validation
from slicegen.utils import to_option_label, to_pascal_case, ts_string

logger: logging.Logger = logging.getLogger("slicegen.ui_templates")

_I: str = "  "
_II: str = _I * 2
_III: str = _I * 3
_IIII: str = _I * 4
_V: str = _I * 5

_HIDDEN_COLUMN_TYPES: frozenset = frozenset({"json"})


class UITemplateGenerator:
    """
    Stateless generator for the client half of a collection slice.

    Shares the run's ``GlobalConfig`` and ``CollectionRegistry`` with
    :class:`~slicegen.emitters.EmitterSet`.
    """

    def __init__(self, config: GlobalConfig, registry: Optional[CollectionRegistry] = None) -> None:
        self._config: GlobalConfig = config
        self._registry: CollectionRegistry = registry if registry is not None else CollectionRegistry()
        self._dialect: str = str(config.dialect)

    # -----------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------

    def _ref_key(self, f: FieldDefinition, n: NamingSet) -> str:
        """Registry key of the collection a reference field points at."""
        if not f.ref_target:
            raise ValueError(f"{f.name} is not a reference field")
        if f.is_external_reference:
            return f.ref_target
        return self._registry.resolve(f.ref_target, n.layer).collection_key

    @staticmethod
    def option_items(f: FieldDefinition) -> List[Dict[str, str]]:
        """``{label, value}`` pairs for an options-bearing field."""
        return [{"label": to_option_label(o), "value": o} for o in (f.meta.options or [])]

    @staticmethod
    def _options_const(f: FieldDefinition) -> str:
        return f"{f.name}Options"

    def _widget(self, f: FieldDefinition, n: NamingSet) -> List[str]:
        """Lines of the input control for one field, without the UFormField wrapper."""
        model: str = f"state.{f.name}"
        type_name: str = str(f.type)

        if f.is_dependent:
            lines: List[str] = [
                "<CroutonFormDependentButtonGroup",
                f'  v-model="{model}"',
            ]
            if f.meta.depends_on:
                lines.append(f'  :dependent-value="state.{f.meta.depends_on}"')
            if f.meta.depends_on_collection:
                collection: str = self._registry.resolve(f.meta.depends_on_collection, n.layer).collection_key
                lines.append(f'  dependent-collection="{collection}"')
            if f.meta.depends_on_field:
                lines.append(f'  dependent-field="{f.meta.depends_on_field}"')
            lines.append("/>")
            return lines

        if f.meta.display_as == "optionsSelect" and f.meta.options:
            return [
                f'<USelect v-model="{model}" :items="{self._options_const(f)}" class="w-full" size="xl" />'
            ]

        if f.meta.options:
            values: str = ", ".join(ts_string(o) for o in f.meta.options)
            return [f'<USelectMenu v-model="{model}" :items="[{values}]" class="w-full" size="xl" />']

        if f.ref_target:
            multiple: str = " multiple" if type_name == FieldType.ARRAY.value else ""
            return [
                "<CroutonFormReferenceSelect",
                f'  collection="{self._ref_key(f, n)}"',
                f'  v-model="{model}"',
                f'  label="{f.label}"{multiple}',
                "/>",
            ]

        if type_name == FieldType.BOOLEAN.value:
            return [f'<UCheckbox v-model="{model}" />']
        if type_name in (FieldType.NUMBER.value, FieldType.DECIMAL.value):
            step: str = ' :step="0.01"' if type_name == FieldType.DECIMAL.value else ""
            return [f'<UInputNumber v-model="{model}"{step} class="w-full" />']
        if type_name == FieldType.DATE.value:
            return [f'<CroutonCalendar v-model:date="{model}" />']
        if type_name == FieldType.TEXT.value:
            return [f'<UTextarea v-model="{model}" class="w-full" size="xl" />']
        if type_name == FieldType.JSON.value:
            return [
                "<UTextarea",
                f'  :model-value="JSON.stringify({model} ?? {{}}, null, 2)"',
                f'  @update:model-value="(v: string) => {{ try {{ {model} = JSON.parse(v) }} catch {{}} }}"',
                '  class="w-full font-mono"',
                '  :rows="6"',
                "/>",
            ]
        if type_name == FieldType.REPEATER.value:
            component: str = (
                f.meta.repeater_component
                or f"{n.prefixed_pascal_plural}{to_pascal_case(f.name)}Input"
            )
            return [
                "<CroutonFormRepeater",
                f'  v-model="{model}"',
                f'  component-name="{component}"',
                f'  add-label="Add {f.label}"',
                "/>",
            ]
        if type_name == FieldType.ARRAY.value:
            return [f'<UInputTags v-model="{model}" class="w-full" />']

        return [f'<UInput v-model="{model}" class="w-full" size="xl" />']

    def _form_field(self, f: FieldDefinition, n: NamingSet, indent: str) -> List[str]:
        if f.meta.component:
            widget: List[str] = [f'<{f.meta.component} v-model="state.{f.name}" />']
        else:
            widget = self._widget(f, n)
        lines: List[str] = [f'{indent}<UFormField label="{f.label}" name="{f.name}" class="not-last:pb-4">']
        lines += [f"{indent}{_I}{w}" for w in widget]
        lines.append(f"{indent}</UFormField>")
        return lines

    # -----------------------------------------------------------------
    # 1. Form
    # -----------------------------------------------------------------

    def emit_form(self, d: CollectionDescriptor, n: NamingSet) -> EmittedArtifact:
        """Generate ``app/components/_Form.vue``."""
        translatable: List[str] = d.translatable_fields
        rendered: List[FieldDefinition] = [f for f in d.fields if f.name not in translatable]
        main: List[FieldDefinition] = [f for f in rendered if (f.meta.area or "main") != "sidebar"]
        sidebar: List[FieldDefinition] = [f for f in rendered if f.meta.area == "sidebar"]
        pp: str = n.prefixed_pascal
        slot_indent: str = _IIII

        lines: List[str] = [
            "<template>",
            f'{_I}<CroutonFormActionButton v-if="action === \'delete\'" :action="action" '
            ':collection="collection" :items="items" :loading="loading" @click="handleSubmit" />',
            "",
            f'{_I}<UForm v-else :schema="schema" :state="state" @submit="handleSubmit">',
            f"{_II}<CroutonFormLayout>",
            f"{_III}<template #main>",
        ]
        if translatable:
            quoted: str = ", ".join(ts_string(t) for t in translatable)
            lines += [
                f'{slot_indent}<CroutonI18nInput v-model="state.translations" :fields="[{quoted}]"'
                ' :default-values="state" label="Translations" />',
            ]
        for f in main:
            lines += self._form_field(f, n, slot_indent)
        lines.append(f"{_III}</template>")

        if sidebar or d.has_hierarchy:
            lines.append("")
            lines.append(f"{_III}<template #sidebar>")
            if d.has_hierarchy:
                h = d.tree
                lines += [
                    f'{slot_indent}<UFormField label="Parent" name="{h.parent_field}" class="not-last:pb-4">',
                    f"{slot_indent}{_I}<CroutonFormParentSelect",
                    f'{slot_indent}{_II}v-model="state.{h.parent_field}"',
                    f'{slot_indent}{_II}collection="{n.collection_key}"',
                    f'{slot_indent}{_II}:current-id="state.id"',
                    f"{slot_indent}{_I}/>",
                    f"{slot_indent}</UFormField>",
                ]
            for f in sidebar:
                lines += self._form_field(f, n, slot_indent)
            lines.append(f"{_III}</template>")

        lines += [
            "",
            f"{_III}<template #footer>",
            f'{slot_indent}<CroutonFormActionButton :action="action" :collection="collection" '
            ':items="items" :loading="loading" />',
            f"{_III}</template>",
            f"{_II}</CroutonFormLayout>",
            f"{_I}</UForm>",
            "</template>",
            "",
            '<script setup lang="ts">',
            f"import type {{ {pp}FormProps, {pp}FormData }} from '../../types'",
            "",
            f"const props = defineProps<{pp}FormProps>()",
            f"const {{ defaultValues, schema, name }} = {n.composable_name}()",
            "const { create, update, deleteItems } = useCollectionMutation(name)",
            "const { close } = useCrouton()",
        ]
        option_fields: List[FieldDefinition] = [
            f for f in rendered if f.meta.display_as == "optionsSelect" and f.meta.options
        ]
        for f in option_fields:
            lines.append("")
            lines.append(f"const {self._options_const(f)} = [")
            items: List[str] = [
                f"{_I}{{ label: {ts_string(o['label'])}, value: {ts_string(o['value'])} }}"
                for o in self.option_items(f)
            ]
            lines.append(",\n".join(items))
            lines.append("]")

        lines += [
            "",
            "const initialValues = props.action === 'update' && props.activeItem?.id",
            f"{_I}? {{ ...defaultValues, ...props.activeItem }}",
            f"{_I}: {{ ...defaultValues }}",
            "",
            f"const state = ref<{pp}FormData & {{ id?: string | null }}>(initialValues)",
            "",
            "const handleSubmit = async () => {",
            f"{_I}try {{",
            f"{_II}if (props.action === 'create') {{",
            f"{_III}await create(state.value)",
            f"{_II}}} else if (props.action === 'update' && state.value.id) {{",
            f"{_III}await update(state.value.id, state.value)",
            f"{_II}}} else if (props.action === 'delete') {{",
            f"{_III}await deleteItems(props.items)",
            f"{_II}}}",
            f"{_II}close()",
            f"{_I}}} catch (error) {{",
            f"{_II}console.error('Form submission failed:', error)",
            f"{_I}}}",
            "}",
            "</script>",
            "",
        ]
        return EmittedArtifact(
            path=f"{n.base_dir}/app/components/_Form.vue",
            content="\n".join(lines),
            kind=ArtifactKind.FORM_UI,
        )

    # -----------------------------------------------------------------
    # 2. List
    # -----------------------------------------------------------------

    def emit_list(self, d: CollectionDescriptor, n: NamingSet) -> EmittedArtifact:
        """Generate ``app/components/List.vue``."""
        key: str = n.collection_key
        lines: List[str] = [
            "<template>",
            f"{_I}<CroutonCollection",
            f'{_II}:layout="layout"',
            f'{_II}collection="{key}"',
            f'{_II}:columns="columns"',
            f'{_II}:rows="items || []"',
            f'{_II}:loading="pending"',
        ]
        if d.has_hierarchy:
            lines.append(f'{_II}:hierarchy="hierarchy"')
        elif d.has_sortable:
            lines.append(f'{_II}:sortable="sortable"')
        if d.collab:
            # Presence room per row is "<collection>-<id>".
            lines.append(f'{_II}:show-collab-presence="{{ roomType: {ts_string(key)} }}"')
        lines += [
            f"{_I}>",
            f"{_II}<template #header>",
            f'{_III}<CroutonTableHeader title="{n.prefixed_pascal_plural}" collection="{key}" create-button />',
            f"{_II}</template>",
        ]
        for f in d.fields:
            type_name: str = str(f.type)
            cell: str = f"{f.name}-cell"
            value: str = f"row.original.{f.name}"
            if f.ref_target and not f.is_dependent and type_name != FieldType.ARRAY.value:
                body: List[str] = [
                    f'<CroutonItemCardMini v-if="{value}" :id="{value}" collection="{self._ref_key(f, n)}" />'
                ]
            elif type_name == FieldType.REPEATER.value:
                body = [f'<{n.prefixed_pascal_plural}{to_pascal_case(f.name)}CardMini :value="{value}" />']
            elif type_name == FieldType.DATE.value:
                body = [f'<CroutonDate :date="{value}" />']
            elif type_name == FieldType.BOOLEAN.value:
                body = [
                    f'<UBadge :color="{value} ? \'success\' : \'neutral\'" variant="subtle">'
                    f"{{{{ {value} ? 'Yes' : 'No' }}}}</UBadge>"
                ]
            elif f.meta.display_as == "optionsSelect" and f.meta.options:
                labels: str = ", ".join(
                    f"{ts_string(o['value'])}: {ts_string(o['label'])}" for o in self.option_items(f)
                )
                body = [f"{{{{ ({{ {labels} }} as Record<string, string>)[{value}] ?? {value} }}}}"]
            else:
                continue
            lines.append(f'{_II}<template #{cell}="{{ row }}">')
            lines += [f"{_III}{b}" for b in body]
            lines.append(f"{_II}</template>")
        lines += [
            f"{_I}</CroutonCollection>",
            "</template>",
            "",
            '<script setup lang="ts">',
            "const props = withDefaults(defineProps<{ layout?: any }>(), {",
            f"{_I}layout: 'table'",
            "})",
            "",
        ]
        extra: str = ""
        if d.has_hierarchy:
            extra = ", hierarchy"
        elif d.has_sortable:
            extra = ", sortable"
        lines += [
            f"const {{ columns{extra} }} = {n.composable_name}()",
            f"const {{ items, pending }} = await useCollectionQuery({ts_string(key)})",
            "</script>",
            "",
        ]
        return EmittedArtifact(
            path=f"{n.base_dir}/app/components/List.vue",
            content="\n".join(lines),
            kind=ArtifactKind.LIST_UI,
        )

    # -----------------------------------------------------------------
    # 3. Composable
    # -----------------------------------------------------------------

    def _schema_lines(self, d: CollectionDescriptor, n: NamingSet) -> List[str]:
        translatable: List[str] = d.translatable_fields
        body: List[str] = [
            f"{_I}{f.name}: {field_validation(f, self._dialect)}"
            for f in d.fields
            if f.name not in translatable
        ]
        if d.has_hierarchy:
            h = d.tree
            body.append(f"{_I}{h.parent_field}: z.string().nullable().optional()")
        if translatable:
            inner: str = ",\n".join(f"{_III}{t}: z.string().optional()" for t in translatable)
            body.append(
                f"{_I}translations: z.record(\n"
                f"{_II}z.string(),\n"
                f"{_II}z.object({{\n{inner}\n{_II}}})\n"
                f"{_I}).optional()"
            )

        lines: List[str] = [f"export const {n.validation_export} = z.object({{"]
        lines.append(",\n".join(body))
        required: List[FieldDefinition] = [
            f for f in d.fields if f.name in translatable and f.meta.required
        ]
        if not required:
            lines.append("})")
            return lines

        locale: str = d.translation.default_locale if d.translation else "en"
        lines.append("})")
        for f in required:
            lines[-1] += ".refine("
            lines.append(
                f"{_I}(data) => !!data.translations?.[{ts_string(locale)}]?.{f.name}?.trim(),"
            )
            lines.append(
                f"{_I}{{ message: {ts_string(f.label + ' is required (' + locale + ')')}, "
                f"path: ['translations', {ts_string(locale)}, {ts_string(f.name)}] }}"
            )
            lines.append(")")
        return lines

    def emit_composable(self, d: CollectionDescriptor, n: NamingSet) -> EmittedArtifact:
        """Generate ``app/composables/use{LayerPascal}{PluralPascal}.ts``."""
        lines: List[str] = ["import { z } from 'zod'", ""]
        lines += self._schema_lines(d, n)
        lines.append("")

        lines.append(f"export const {n.columns_export} = [")
        columns: List[str] = []
        for f in d.fields:
            if str(f.type) in _HIDDEN_COLUMN_TYPES:
                continue
            columns.append(f"{_I}{{ accessorKey: {ts_string(f.name)}, header: {ts_string(f.label)} }}")
        lines.append(",\n".join(columns))
        lines.append("]")
        lines.append("")

        defaults: List[str] = [
            f"{_II}{f.name}: {field_default(f, self._dialect)}"
            for f in d.fields
            if f.name not in d.translatable_fields
        ]
        if d.has_hierarchy:
            h = d.tree
            defaults.append(f"{_II}{h.parent_field}: null")
        if d.has_translations:
            defaults.append(f"{_II}translations: {{}}")

        lines += [
            f"export const {n.config_export} = {{",
            f"{_I}name: {ts_string(n.collection_key)},",
            f"{_I}layer: {ts_string(n.layer)},",
            f"{_I}apiPath: {ts_string(n.api_path)},",
            f"{_I}componentName: {ts_string(n.component_name)},",
            f"{_I}schema: {n.validation_export},",
            f"{_I}defaultValues: {{",
            ",\n".join(defaults),
            f"{_I}}},",
            f"{_I}columns: {n.columns_export},",
        ]
        refs: List[str] = [
            f"{_II}{f.name}: {ts_string(self._ref_key(f, n))}"
            for f in d.fields
            if f.ref_target and not f.is_dependent
        ]
        if refs:
            lines += [f"{_I}references: {{", ",\n".join(refs), f"{_I}}},"]
        if d.has_hierarchy:
            h = d.tree
            lines += [
                f"{_I}hierarchy: {{",
                f"{_II}enabled: true,",
                f"{_II}parentField: {ts_string(h.parent_field)},",
                f"{_II}pathField: {ts_string(h.path_field)},",
                f"{_II}depthField: {ts_string(h.depth_field)},",
                f"{_II}orderField: {ts_string(h.order_field)}",
                f"{_I}}},",
            ]
        elif d.has_sortable:
            lines += [
                f"{_I}sortable: {{",
                f"{_II}enabled: true,",
                f"{_II}orderField: {ts_string(d.order_field)}",
                f"{_I}}},",
            ]
        if d.has_translations:
            quoted: str = ", ".join(ts_string(t) for t in d.translatable_fields)
            lines.append(f"{_I}translations: {{ fields: [{quoted}] }},")
        lines[-1] = lines[-1].rstrip(",")
        lines += [
            "}",
            "",
            f"export const {n.composable_name} = () => {n.config_export}",
            "",
            f"export default {n.composable_name}",
            "",
        ]
        return EmittedArtifact(
            path=f"{n.base_dir}/app/composables/{n.composable_name}.ts",
            content="\n".join(lines),
            kind=ArtifactKind.COMPOSABLE,
        )

    # -----------------------------------------------------------------
    # 4. Repeater field components
    # -----------------------------------------------------------------

    def emit_field_components(self, d: CollectionDescriptor, n: NamingSet) -> List[EmittedArtifact]:
        out: List[EmittedArtifact] = []
        for f in d.fields:
            if str(f.type) != FieldType.REPEATER.value or f.meta.repeater_component:
                continue
            field_pascal: str = to_pascal_case(f.name)
            folder: str = f"{n.base_dir}/app/components/{field_pascal}"
            for name, content in (
                ("Input.vue", self._repeater_input(n, field_pascal)),
                ("Select.vue", self._repeater_select(n, f)),
                ("CardMini.vue", self._repeater_card_mini()),
            ):
                out.append(EmittedArtifact(
                    path=f"{folder}/{name}",
                    content=content,
                    kind=ArtifactKind.FIELD_COMPONENT,
                ))
        return out

    @staticmethod
    def _repeater_input(n: NamingSet, field_pascal: str) -> str:
        item: str = f"{n.prefixed_pascal_plural}{field_pascal}Item"
        lines: List[str] = [
            '<script setup lang="ts">',
            "import { nanoid } from 'nanoid'",
            "",
            f"interface {item} {{",
            f"{_I}id: string",
            f"{_I}label?: string",
            f"{_I}value?: string",
            "}",
            "",
            f"const model = defineModel<{item}>()",
            "",
            "if (model.value && !model.value.id) {",
            f"{_I}model.value = {{ ...model.value, id: nanoid() }}",
            "}",
            "</script>",
            "",
            "<template>",
            f"{_I}<UFormField>",
            f'{_II}<UInput v-model="model.label" class="w-full" size="xl" placeholder="Enter label" />',
            f"{_I}</UFormField>",
            "</template>",
            "",
        ]
        return "\n".join(lines)

    @staticmethod
    def _repeater_select(n: NamingSet, f: FieldDefinition) -> str:
        lines: List[str] = [
            "<template>",
            f"{_I}<div>",
            f'{_II}<div v-if="pending" class="text-sm text-gray-500">Loading options...</div>',
            f'{_II}<div v-else-if="!options || options.length === 0" class="text-sm text-gray-500">',
            f"{_III}No options available",
            f"{_II}</div>",
            f"{_II}<CroutonFormDependentSelectOption",
            f"{_III}v-else",
            f'{_III}v-model="localValue"',
            f'{_III}:options="options"',
            f'{_III}:multiple="multiple"',
            f'{_III}dependent-collection="{n.collection_key}"',
            f'{_III}dependent-field="{f.name}"',
            f"{_II}/>",
            f"{_I}</div>",
            "</template>",
            "",
            '<script setup lang="ts">',
            "interface Option {",
            f"{_I}id: string",
            f"{_I}label: string",
            f"{_I}value?: string",
            "}",
            "",
            "const props = withDefaults(defineProps<{",
            f"{_I}modelValue?: string[] | null",
            f"{_I}options?: Option[]",
            f"{_I}pending?: boolean",
            f"{_I}multiple?: boolean",
            "}>(), {",
            f"{_I}modelValue: null,",
            f"{_I}options: () => [],",
            f"{_I}pending: false,",
            f"{_I}multiple: false",
            "})",
            "",
            "const emit = defineEmits<{ 'update:modelValue': [value: string[] | null] }>()",
            "",
            "const localValue = computed({",
            f"{_I}get: () => props.modelValue,",
            f"{_I}set: (value) => emit('update:modelValue', value)",
            "})",
            "</script>",
            "",
        ]
        return "\n".join(lines)

    @staticmethod
    def _repeater_card_mini() -> str:
        lines: List[str] = [
            "<template>",
            f'{_I}<div class="text-sm">',
            f'{_II}<div v-if="normalizedValue.length > 0" class="flex flex-wrap gap-1">',
            f'{_III}<UBadge v-for="(item, index) in normalizedValue.slice(0, 3)" :key="index" color="neutral" variant="subtle">',
            f"{_IIII}{{{{ item.label || item.value || item }}}}",
            f"{_III}</UBadge>",
            f'{_III}<UBadge v-if="normalizedValue.length > 3" color="neutral" variant="subtle">',
            f"{_IIII}+{{{{ normalizedValue.length - 3 }}}} more",
            f"{_III}</UBadge>",
            f"{_II}</div>",
            f'{_II}<span v-else class="text-gray-400">-</span>',
            f"{_I}</div>",
            "</template>",
            "",
            '<script setup lang="ts">',
            "const props = defineProps<{ value?: any[] | any | null }>()",
            "",
            "const normalizedValue = computed(() => {",
            f"{_I}if (!props.value) return []",
            f"{_I}return Array.isArray(props.value) ? props.value : [props.value]",
            "})",
            "</script>",
            "",
        ]
        return "\n".join(lines)


__all__: List[str] = [
    "UITemplateGenerator",
]

logger.debug("slicegen.ui_templates loaded.")
