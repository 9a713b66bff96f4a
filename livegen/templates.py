"""
Fixed project files every generated app starts from, and a handful of
ready-made apps served without a model call when a prompt clearly asks for one.
"""
import json, logging, textwrap

from .models import GeneratedFile, normalize_path

log = logging.getLogger("templates")


# ── Base project (never model-generated) ─────────────────────────────────────

def _package_json() -> str:
    pkg = {
        "name": "livegen-app", "private": True, "version": "0.0.0", "type": "module",
        "scripts": {
            "dev":     "vite",
            "build":   "vite build",
            "preview": "vite preview",
        },
        "dependencies": {
            "react": "^18.2.0", "react-dom": "^18.2.0",
            "react-router-dom": "^6.20.0",
            "lucide-react": "^0.294.0", "framer-motion": "^10.16.0",
            "react-hot-toast": "^2.4.1", "sonner": "^1.3.1", "zustand": "^4.4.7",
            "@radix-ui/react-dialog": "^1.0.5",
            "@radix-ui/react-dropdown-menu": "^2.0.6",
            "@radix-ui/react-slot": "^1.0.2",
            "@radix-ui/react-tabs": "^1.0.4",
            "@radix-ui/react-toast": "^1.1.5",
            "@radix-ui/react-tooltip": "^1.0.7",
            "class-variance-authority": "^0.7.0",
            "clsx": "^2.0.0", "tailwind-merge": "^2.0.0",
        },
        "devDependencies": {
            "@types/react": "^18.2.0",
            "@types/react-dom": "^18.2.0",
            "@vitejs/plugin-react": "^4.2.0",
            "autoprefixer": "^10.4.16",
            "postcss": "^8.4.31",
            "tailwindcss": "^3.3.5",
            "typescript": "^5.2.0",
            "vite": "^5.0.0",
        },
    }
    return json.dumps(pkg, indent=2) + "\n"


VITE_CONFIG = textwrap.dedent("""\
    import { defineConfig } from 'vite'
    import react from '@vitejs/plugin-react'

    export default defineConfig({
      plugins: [react()],
      resolve: { alias: { '@': '/src' } },
      server: { host: true, port: 5173 },
      clearScreen: false,
    })
    """)

TSCONFIG = json.dumps({
    "compilerOptions": {
        "target": "ES2020", "useDefineForClassFields": True,
        "lib": ["ES2020", "DOM", "DOM.Iterable"],
        "module": "ESNext", "skipLibCheck": True,
        "moduleResolution": "bundler", "allowImportingTsExtensions": True,
        "resolveJsonModule": True, "isolatedModules": True, "noEmit": True,
        "jsx": "react-jsx", "strict": True,
        "baseUrl": ".", "paths": {"@/*": ["./src/*"]},
    },
    "include": ["src"],
    "references": [{"path": "./tsconfig.node.json"}],
}, indent=2) + "\n"

TSCONFIG_NODE = json.dumps({
    "compilerOptions": {
        "composite": True, "skipLibCheck": True, "module": "ESNext",
        "moduleResolution": "bundler", "allowSyntheticDefaultImports": True,
        "strict": True,
    },
    "include": ["vite.config.ts"],
}, indent=2) + "\n"

TAILWIND_CONFIG = textwrap.dedent("""\
    /** @type {import('tailwindcss').Config} */
    export default {
      content: ['./index.html', './src/**/*.{js,ts,jsx,tsx}'],
      theme: { extend: {} },
      plugins: [],
    }
    """)

POSTCSS_CONFIG = "export default { plugins: { tailwindcss: {}, autoprefixer: {} } }\n"

INDEX_HTML = textwrap.dedent("""\
    <!DOCTYPE html>
    <html lang="en">
    <head>
      <meta charset="UTF-8" />
      <meta name="viewport" content="width=device-width,initial-scale=1.0" />
      <title>livegen app</title>
    </head>
    <body>
      <div id="root"></div>
      <script type="module" src="/src/main.tsx"></script>
    </body>
    </html>
    """)

MAIN_TSX = textwrap.dedent("""\
    import React from 'react'
    import ReactDOM from 'react-dom/client'
    import App from './App'
    import './index.css'

    ReactDOM.createRoot(document.getElementById('root')!).render(
      <React.StrictMode>
        <App />
      </React.StrictMode>,
    )
    """)

INDEX_CSS = textwrap.dedent("""\
    @tailwind base;
    @tailwind components;
    @tailwind utilities;

    @layer base {
      * { box-sizing: border-box; }
      /* Dark background + light text even when a component sets neither. */
      html, body, #root {
        min-height: 100vh;
        background-color: #030712;
        color: #f9fafb;
      }
      body { font-family: system-ui, -apple-system, 'Segoe UI', Roboto, sans-serif; }
    }
    """)

UTILS_TS = textwrap.dedent("""\
    import { clsx, type ClassValue } from 'clsx'
    import { twMerge } from 'tailwind-merge'

    export function cn(...inputs: ClassValue[]) {
      return twMerge(clsx(inputs))
    }
    """)

VITE_ENV = '/// <reference types="vite/client" />\n'

BASE_FILES = [
    GeneratedFile("package.json",        _package_json()),
    GeneratedFile("vite.config.ts",      VITE_CONFIG),
    GeneratedFile("tsconfig.json",       TSCONFIG),
    GeneratedFile("tsconfig.node.json",  TSCONFIG_NODE),
    GeneratedFile("tailwind.config.js",  TAILWIND_CONFIG),
    GeneratedFile("postcss.config.js",   POSTCSS_CONFIG),
    GeneratedFile("index.html",          INDEX_HTML),
    GeneratedFile("src/main.tsx",        MAIN_TSX),
    GeneratedFile("src/index.css",       INDEX_CSS),
    GeneratedFile("src/lib/utils.ts",    UTILS_TS),
    GeneratedFile("src/vite-env.d.ts",   VITE_ENV),
]

BASE_PATHS = frozenset(f.path for f in BASE_FILES)


def is_base_file(path: str) -> bool:
    return normalize_path(path) in BASE_PATHS


# ── Ready-made apps ───────────────────────────────────────────────────────────

class Template:
    def __init__(self, id: str, name: str, keywords, files):
        self.id       = id
        self.name     = name
        self.keywords = list(keywords)
        self.files    = [GeneratedFile(p, textwrap.dedent(c)) for p, c in files]

    def score(self, prompt: str) -> int:
        lower = prompt.lower()
        return sum(1 for kw in self.keywords if kw in lower)

    def __repr__(self):
        return f"Template({self.id!r}, {len(self.files)} files)"


LANDING = Template("landing", "Landing Page",
    ["landing", "landing page", "website", "marketing", "homepage", "company"],
    [
        ("src/App.tsx", """\
            import { Navbar } from './components/Navbar'
            import { Hero } from './components/Hero'
            import { Features } from './components/Features'

            export default function App() {
              return (
                <div className="min-h-screen bg-gray-950 text-white">
                  <Navbar />
                  <Hero />
                  <Features />
                  <footer className="py-10 text-center text-gray-500 border-t border-white/10">
                    © {new Date().getFullYear()} Acme Inc.
                  </footer>
                </div>
              )
            }
            """),
        ("src/components/Navbar.tsx", """\
            import { Sparkles } from 'lucide-react'

            const links = ['Features', 'Pricing', 'Contact']

            export function Navbar() {
              return (
                <nav className="sticky top-0 z-50 backdrop-blur bg-gray-950/80 border-b border-white/10">
                  <div className="max-w-6xl mx-auto px-6 h-16 flex items-center justify-between">
                    <span className="flex items-center gap-2 font-bold text-lg">
                      <Sparkles className="w-5 h-5 text-purple-400" /> Acme
                    </span>
                    <div className="hidden md:flex gap-8 text-gray-300">
                      {links.map(l => (
                        <a key={l} href={`#${l.toLowerCase()}`} className="hover:text-white transition">{l}</a>
                      ))}
                    </div>
                  </div>
                </nav>
              )
            }
            """),
        ("src/components/Hero.tsx", """\
            import { motion } from 'framer-motion'
            import { ArrowRight } from 'lucide-react'

            export function Hero() {
              return (
                <section className="max-w-6xl mx-auto px-6 py-32 text-center">
                  <motion.h1
                    initial={{ opacity: 0, y: 20 }}
                    animate={{ opacity: 1, y: 0 }}
                    className="text-5xl md:text-7xl font-extrabold bg-gradient-to-r from-purple-500 to-pink-500 bg-clip-text text-transparent">
                    Build faster. Ship sooner.
                  </motion.h1>
                  <p className="mt-6 text-xl text-gray-400 max-w-2xl mx-auto">
                    Everything your team needs to go from idea to production in days, not months.
                  </p>
                  <button className="mt-10 inline-flex items-center gap-2 px-8 py-4 rounded-xl bg-purple-600 hover:bg-purple-500 transition font-semibold">
                    Get started <ArrowRight className="w-5 h-5" />
                  </button>
                </section>
              )
            }
            """),
        ("src/components/Features.tsx", """\
            import { Zap, Shield, Globe } from 'lucide-react'

            const features = [
              { icon: Zap, title: 'Fast', text: 'Instant previews on every change.' },
              { icon: Shield, title: 'Secure', text: 'Sandboxed by default.' },
              { icon: Globe, title: 'Global', text: 'Deploy anywhere in one click.' },
            ]

            export function Features() {
              return (
                <section id="features" className="max-w-6xl mx-auto px-6 py-24 grid md:grid-cols-3 gap-8">
                  {features.map(({ icon: Icon, title, text }) => (
                    <div key={title} className="p-8 rounded-2xl bg-gray-900 border border-white/10 hover:border-purple-500/50 transition">
                      <Icon className="w-8 h-8 text-purple-400 mb-4" />
                      <h3 className="text-xl font-semibold mb-2">{title}</h3>
                      <p className="text-gray-400">{text}</p>
                    </div>
                  ))}
                </section>
              )
            }
            """),
    ])

DASHBOARD = Template("dashboard", "Dashboard",
    ["dashboard", "admin", "panel", "analytics", "management", "metrics"],
    [
        ("src/App.tsx", """\
            import { Sidebar } from './components/Sidebar'
            import { Stats } from './components/Stats'

            export default function App() {
              return (
                <div className="min-h-screen flex bg-gray-950 text-white">
                  <Sidebar />
                  <main className="flex-1 p-8">
                    <h1 className="text-3xl font-bold mb-8">Overview</h1>
                    <Stats />
                  </main>
                </div>
              )
            }
            """),
        ("src/components/Sidebar.tsx", """\
            import { LayoutDashboard, Users, Settings } from 'lucide-react'

            const items = [
              { icon: LayoutDashboard, label: 'Dashboard' },
              { icon: Users, label: 'Users' },
              { icon: Settings, label: 'Settings' },
            ]

            export function Sidebar() {
              return (
                <aside className="w-64 bg-gray-900 border-r border-white/10 p-6 hidden md:block">
                  <div className="text-xl font-bold mb-10">Admin</div>
                  <nav className="space-y-2">
                    {items.map(({ icon: Icon, label }) => (
                      <button key={label} className="w-full flex items-center gap-3 px-4 py-2 rounded-lg text-gray-300 hover:bg-white/5 hover:text-white transition">
                        <Icon className="w-5 h-5" /> {label}
                      </button>
                    ))}
                  </nav>
                </aside>
              )
            }
            """),
        ("src/components/Stats.tsx", """\
            import { TrendingUp, TrendingDown } from 'lucide-react'

            const stats = [
              { name: 'Total Users', value: '12,345', change: '+12%', up: true },
              { name: 'Revenue', value: '$45,678', change: '+8%', up: true },
              { name: 'Orders', value: '1,234', change: '-3%', up: false },
              { name: 'Growth', value: '23%', change: '+5%', up: true },
            ]

            export function Stats() {
              return (
                <div className="grid sm:grid-cols-2 lg:grid-cols-4 gap-6">
                  {stats.map(s => (
                    <div key={s.name} className="p-6 rounded-2xl bg-gray-900 border border-white/10">
                      <p className="text-gray-400 text-sm">{s.name}</p>
                      <p className="text-3xl font-bold mt-2">{s.value}</p>
                      <p className={`mt-2 flex items-center gap-1 text-sm ${s.up ? 'text-emerald-400' : 'text-red-400'}`}>
                        {s.up ? <TrendingUp className="w-4 h-4" /> : <TrendingDown className="w-4 h-4" />}
                        {s.change}
                      </p>
                    </div>
                  ))}
                </div>
              )
            }
            """),
    ])

TODO = Template("todo", "Todo App",
    ["todo", "task", "tasks", "todo app", "task manager", "checklist"],
    [
        ("src/App.tsx", """\
            import { TodoApp } from './components/TodoApp'

            export default function App() {
              return (
                <div className="min-h-screen bg-gray-950 py-12 px-4">
                  <TodoApp />
                </div>
              )
            }
            """),
        ("src/components/TodoApp.tsx", """\
            import { useState } from 'react'
            import { Plus, Trash2, Check } from 'lucide-react'

            interface Todo {
              id: string
              text: string
              completed: boolean
            }

            export function TodoApp() {
              const [todos, setTodos] = useState<Todo[]>([])
              const [text, setText] = useState('')

              const add = () => {
                if (!text.trim()) return
                setTodos([...todos, { id: crypto.randomUUID(), text: text.trim(), completed: false }])
                setText('')
              }
              const toggle = (id: string) =>
                setTodos(todos.map(t => (t.id === id ? { ...t, completed: !t.completed } : t)))
              const remove = (id: string) => setTodos(todos.filter(t => t.id !== id))

              return (
                <div className="max-w-xl mx-auto bg-gray-900 rounded-2xl border border-white/10 p-8 text-white">
                  <h1 className="text-3xl font-bold mb-6">Tasks</h1>
                  <div className="flex gap-3 mb-6">
                    <input
                      value={text}
                      onChange={e => setText(e.target.value)}
                      onKeyDown={e => e.key === 'Enter' && add()}
                      placeholder="What needs doing?"
                      className="flex-1 bg-gray-800 border border-white/10 rounded-xl px-4 py-3" />
                    <button onClick={add} className="px-4 rounded-xl bg-purple-600 hover:bg-purple-500 transition">
                      <Plus className="w-5 h-5" />
                    </button>
                  </div>
                  <ul className="space-y-2">
                    {todos.map(t => (
                      <li key={t.id} className="flex items-center gap-3 p-3 rounded-xl bg-gray-800">
                        <button onClick={() => toggle(t.id)}
                          className={`w-6 h-6 rounded-full border flex items-center justify-center ${t.completed ? 'bg-emerald-500 border-emerald-500' : 'border-gray-500'}`}>
                          {t.completed && <Check className="w-4 h-4" />}
                        </button>
                        <span className={`flex-1 ${t.completed ? 'line-through text-gray-500' : ''}`}>{t.text}</span>
                        <button onClick={() => remove(t.id)} className="text-gray-500 hover:text-red-400">
                          <Trash2 className="w-4 h-4" />
                        </button>
                      </li>
                    ))}
                  </ul>
                </div>
              )
            }
            """),
    ])

TEMPLATES = [LANDING, DASHBOARD, TODO]


def match_template(prompt: str, templates=None):
    """Highest keyword score wins; ties keep the earlier template. None if nothing scores."""
    best, best_score = None, 0
    for t in templates if templates is not None else TEMPLATES:
        s = t.score(prompt)
        if s > best_score:
            best, best_score = t, s
    if best:
        log.info(f"   template match: {best.id} (score {best_score})")
    return best
